"""模块路径大小写转义

Go 模块缓存与 GOPROXY 协议中，路径里的大写字母写作 "!" + 对应小写字母，
例如 github.com/Sirupsen/logrus -> github.com/!sirupsen/logrus，
以兼容大小写不敏感的文件系统。版本号同样适用此规则。

对不含 "!" 的路径，escape_path 与 unescape_path 互为逆运算。
"""

from __future__ import annotations

from modpublish.core.exceptions import ValidationError


def _is_upper(ch: str) -> bool:
    return "A" <= ch <= "Z"


def _is_lower(ch: str) -> bool:
    return "a" <= ch <= "z"


def escape_path(path: str) -> str:
    """大写字母转义为 '!' + 小写字母"""
    if "!" in path:
        raise ValidationError(f"模块路径不能包含 '!': {path}")
    return "".join(f"!{ch.lower()}" if _is_upper(ch) else ch for ch in path)


def unescape_path(escaped: str) -> str:
    """还原 escape_path 的结果，非法转义抛出 ValidationError"""
    out: list[str] = []
    bang = False
    for ch in escaped:
        if bang:
            if not _is_lower(ch):
                raise ValidationError(f"无效转义 '!{ch}': {escaped}")
            out.append(ch.upper())
            bang = False
        elif ch == "!":
            bang = True
        elif _is_upper(ch):
            raise ValidationError(f"转义路径中不应出现大写字母: {escaped}")
        else:
            out.append(ch)
    if bang:
        raise ValidationError(f"转义路径以 '!' 结尾: {escaped}")
    return "".join(out)
