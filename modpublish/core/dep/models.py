"""依赖解析数据模型

- ModuleKey: 模块标识 (转义路径, 版本)，在边界处一次性解析
- Package: 待发布的依赖包
- ModuleFiles: 从制品库/上游代理下载的一组模块文件
- Workspace: 单个包的临时工作目录
- ManifestState: go.mod 生命周期的显式状态
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path

from modpublish.core.dep.modpath import escape_path, unescape_path
from modpublish.core.exceptions import ValidationError

MANIFEST_FILE = "go.mod"
LOCK_FILE = "go.sum"


class TidyMode(str, enum.Enum):
    """tidy: 补全 go.mod 并递归发布传递依赖；none: 原样发布"""

    TIDY = "tidy"
    NONE = "none"


@dataclass(frozen=True)
class ModuleKey:
    """模块唯一标识，path 为转义后的模块路径"""

    path: str
    version: str

    def __post_init__(self) -> None:
        if not self.path or not self.version:
            raise ValidationError(f"模块路径和版本均不能为空: {self.path!r}:{self.version!r}")
        for sep in (":", "@"):
            if sep in self.path or sep in self.version:
                raise ValidationError(f"模块标识包含非法分隔符 '{sep}': {self.path}:{self.version}")
        # 提前校验转义格式
        unescape_path(self.path)

    @classmethod
    def from_module(cls, module_path: str, version: str) -> ModuleKey:
        """由原始（未转义）模块路径构造"""
        return cls(escape_path(module_path), version)

    @classmethod
    def parse_id(cls, text: str) -> ModuleKey:
        """解析缓存标识 'escaped/path:version'"""
        parts = text.split(":")
        if len(parts) != 2:
            raise ValidationError(f"无效的模块标识（需要恰好一个 ':'）: {text!r}")
        return cls(parts[0], parts[1])

    @classmethod
    def parse_edge(cls, text: str) -> ModuleKey:
        """解析依赖图中的边 'module/Path@version'"""
        parts = text.strip().split("@")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ValidationError(f"无效的依赖边（需要恰好一个 '@'）: {text!r}")
        return cls.from_module(parts[0], parts[1])

    @property
    def id(self) -> str:
        return f"{self.path}:{self.version}"

    @property
    def module_name(self) -> str:
        """还原大小写后的模块路径，供 go mod init 使用"""
        return unescape_path(self.path)

    @property
    def edge(self) -> str:
        return f"{self.module_name}@{self.version}"

    @property
    def escaped_version(self) -> str:
        return escape_path(self.version)

    def __str__(self) -> str:
        return self.id


@dataclass(eq=False)
class Package:
    """待发布的依赖包

    相等性与哈希只由 key 决定；manifest_content 在补全/回退过程中会被替换。
    """

    key: ModuleKey
    manifest_content: bytes = b""
    archive_location: Path | None = None
    info_location: Path | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Package):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    @property
    def id(self) -> str:
        return self.key.id

    def set_manifest_content(self, content: bytes) -> None:
        self.manifest_content = content


@dataclass
class ModuleFiles:
    """一个模块版本的 .mod / .zip / .info 内容"""

    mod: bytes
    zip: bytes
    info: bytes | None = None


@dataclass
class Workspace:
    """包解压后的临时工作目录

    root 为本次解压独占的临时目录，module_dir 为其中的模块根目录
    （归档内的 '<module>@<version>/' 前缀）。
    """

    root: Path
    module_dir: Path

    @property
    def manifest_path(self) -> Path:
        return self.module_dir / MANIFEST_FILE

    @property
    def lock_path(self) -> Path:
        return self.module_dir / LOCK_FILE


# ---------------------------------------------------------------------------
# go.mod 生命周期
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Draft:
    """尚未判定"""


@dataclass(frozen=True)
class TidyGenerated:
    """go.mod 由 tidy 临时生成，仅用于计算依赖图；发布前必须回退到 snapshot"""

    snapshot: bytes


@dataclass(frozen=True)
class Populated:
    """go.mod 可直接作为发布内容"""


@dataclass(frozen=True)
class Published:
    """已成功发布到制品库"""


ManifestState = Draft | TidyGenerated | Populated | Published
