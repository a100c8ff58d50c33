"""服务容器 - 按配置懒加载各协作者

CLI 通过 get_container() 获取服务，同一容器内的实例共享。

依赖关系（→ 表示依赖）:
  vendor → repository, upstream, local_cache, archives, build_tool
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modpublish.core.config import Config
    from modpublish.services.archive import ZipArchiveStore
    from modpublish.services.goproxy import ArtifactoryRepository, GoProxyClient
    from modpublish.services.gotool import GoToolAdapter
    from modpublish.services.modcache import LocalModuleCache
    from modpublish.services.vendor_service import VendorService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(self, config: Config | None = None) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from modpublish.core.config import get_config
            config = get_config()
        self._config = config

    @property
    def config(self) -> Config:
        return self._config

    @property
    def local_cache(self) -> LocalModuleCache:
        if "local_cache" not in self._instances:
            from modpublish.services.modcache import LocalModuleCache
            self._instances["local_cache"] = LocalModuleCache(
                self._config.resolved_module_cache_dir(),
            )
        return self._instances["local_cache"]  # type: ignore[return-value]

    @property
    def archives(self) -> ZipArchiveStore:
        if "archives" not in self._instances:
            from modpublish.services.archive import ZipArchiveStore
            self._instances["archives"] = ZipArchiveStore(self._config.resolved_work_dir())
        return self._instances["archives"]  # type: ignore[return-value]

    @property
    def build_tool(self) -> GoToolAdapter:
        if "build_tool" not in self._instances:
            from modpublish.services.gotool import GoToolAdapter
            self._instances["build_tool"] = GoToolAdapter(
                go_binary=self._config.go_binary,
                proxy=self._config.upstream_proxy,
                timeout=self._config.command_timeout,
            )
        return self._instances["build_tool"]  # type: ignore[return-value]

    @property
    def repository(self) -> ArtifactoryRepository:
        if "repository" not in self._instances:
            from modpublish.services.goproxy import ArtifactoryRepository
            self._instances["repository"] = ArtifactoryRepository(
                self._config.repo_url,
                token=self._config.api_token,
                timeout=self._config.http_timeout,
            )
        return self._instances["repository"]  # type: ignore[return-value]

    @property
    def upstream(self) -> GoProxyClient:
        if "upstream" not in self._instances:
            from modpublish.services.goproxy import GoProxyClient
            self._instances["upstream"] = GoProxyClient(
                self._config.upstream_proxy, timeout=self._config.http_timeout,
            )
        return self._instances["upstream"]  # type: ignore[return-value]

    @property
    def vendor(self) -> VendorService:
        if "vendor" not in self._instances:
            from modpublish.core.dep.matcher import ManifestMatcher
            from modpublish.core.dep.models import TidyMode
            from modpublish.services.vendor_service import VendorService
            cfg = self._config
            self._instances["vendor"] = VendorService(
                repository=self.repository,
                upstream=self.upstream,
                local_cache=self.local_cache,
                archives=self.archives,
                build_tool=self.build_tool,
                target_repo=cfg.target_repo,
                matcher=ManifestMatcher(cfg.edit_marker),
                edit_message=cfg.resolved_edit_message(),
                tidy_mode=TidyMode(cfg.tidy_mode),
                max_workers=cfg.max_workers,
                ledger_file=cfg.ledger_file,
            )
        return self._instances["vendor"]  # type: ignore[return-value]


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def reset_container() -> None:
    """重置全局容器（配置变更后或测试中使用）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
