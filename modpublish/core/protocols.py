"""外部协作者协议

解析引擎只依赖这些接口契约（Protocol），具体实现在 services 层；
测试时可以用最小的假实现替换任意一个。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from modpublish.core.dep.models import ModuleFiles, ModuleKey, Package, Workspace


# =========================================================================
# 归档
# =========================================================================

class ArchiveStore(Protocol):
    """把包归档解压到独占的临时工作目录"""

    def unpack(self, package: Package) -> Workspace:
        """解压失败抛出 DependencyError"""
        ...

    def cleanup(self, workspace: Workspace) -> None:
        """删除工作目录；失败只记录日志"""
        ...


# =========================================================================
# 构建工具（go 命令）
# =========================================================================

class BuildToolAdapter(Protocol):
    """go mod init / tidy / graph 与 go.sum 暂存；命令失败抛出 ExecutionError"""

    def init(self, workspace: Workspace, module_name: str, edit_message: str) -> None:
        ...

    def tidy(self, workspace: Workspace) -> None:
        ...

    def compute_graph(self, workspace: Workspace) -> set[str]:
        """返回 'path@version' 形式的依赖边集合"""
        ...

    def extract_lock_file(self, workspace: Workspace) -> tuple[bytes, int | None]:
        """取出并删除 go.sum，返回 (内容, 文件 mode)；不存在时返回 (b"", None)"""
        ...

    def restore_lock_file(self, workspace: Workspace, content: bytes, mode: int) -> None:
        ...


# =========================================================================
# 制品库 / 上游代理
# =========================================================================

class ArtifactRepository(Protocol):
    """目标制品库；访问失败抛出 RepositoryError"""

    def publish(self, package: Package, target_repo: str) -> None:
        ...

    def fetch_manifest(self, key: ModuleKey, target_repo: str) -> bytes:
        ...

    def exists(self, key: ModuleKey, target_repo: str) -> bool:
        ...

    def download(self, key: ModuleKey, target_repo: str) -> ModuleFiles:
        ...


class ModuleSource(Protocol):
    """上游模块来源（GOPROXY）"""

    def download(self, key: ModuleKey) -> ModuleFiles:
        ...


# =========================================================================
# 本地模块缓存
# =========================================================================

class ModuleCacheStore(Protocol):
    """本地模块缓存: root/<转义路径>/@v/<版本>.{mod,zip,info}"""

    def load(self, key: ModuleKey) -> Package | None:
        """zip 不存在时返回 None"""
        ...

    def store(self, key: ModuleKey, files: ModuleFiles) -> Package:
        ...

    def write_manifest(self, key: ModuleKey, content: bytes) -> None:
        ...
