"""go.mod 内容判定

"空" go.mod: 没有任何一行声明 require（只有 module 行或干脆为空）。
生成标记: 由本工具生成或修改过的 go.mod 顶部带有 edit marker 注释。
"""

from __future__ import annotations

import re

from modpublish.core.config import DEFAULT_EDIT_MARKER

NOT_EMPTY_MOD_PATTERN = r"^\s*require (?:[\(\w\.@:%_\+-.~#?&]?.+)"


class ManifestMatcher:
    """按行匹配 go.mod 内容"""

    def __init__(
        self,
        edit_marker: str = DEFAULT_EDIT_MARKER,
        not_empty_pattern: str = NOT_EMPTY_MOD_PATTERN,
    ) -> None:
        self.edit_marker = edit_marker
        self.not_empty = re.compile(not_empty_pattern)
        self.generated_by = re.compile("^(" + re.escape(edit_marker) + ")")

    @staticmethod
    def _lines(content: bytes) -> list[str]:
        return content.decode("utf-8", errors="replace").split("\n")

    def pattern_matched(self, content: bytes, pattern: re.Pattern[str]) -> bool:
        return any(pattern.search(line) for line in self._lines(content))

    def is_empty(self, content: bytes) -> bool:
        return not self.pattern_matched(content, self.not_empty)

    def has_marker(self, content: bytes) -> bool:
        return self.pattern_matched(content, self.generated_by)
