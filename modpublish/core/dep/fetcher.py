"""依赖包拉取器 - 本地优先 + 远程回退

拉取策略:
  1. 本地模块缓存中已有 zip → 直接使用
  2. 探测目标制品库是否已有该版本（结果同时决定台账中的初始状态）
  3. 本地不存在时: 制品库已有则从制品库下载，否则从上游代理下载，
     下载结果写入本地模块缓存
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modpublish.core.dep.models import ModuleKey, Package
    from modpublish.core.protocols import ArtifactRepository, ModuleCacheStore, ModuleSource

logger = logging.getLogger(__name__)


class PackageFetcher:
    """把模块标识落地为可解压的 Package"""

    def __init__(
        self,
        local_cache: ModuleCacheStore,
        repository: ArtifactRepository,
        upstream: ModuleSource,
        target_repo: str,
    ) -> None:
        self.local_cache = local_cache
        self.repository = repository
        self.upstream = upstream
        self.target_repo = target_repo

    def materialize(self, key: ModuleKey) -> tuple[Package, bool]:
        """返回 (package, 制品库中是否已存在)

        Raises:
            RepositoryError: 探测或下载失败
            DependencyError / OSError: 本地缓存写入失败
        """
        package = self.local_cache.load(key)
        in_repo = self.repository.exists(key, self.target_repo)

        if package is not None:
            logger.debug("本地缓存命中: %s", key)
            return package, in_repo

        if in_repo:
            logger.info("从制品库下载: %s (repo=%s)", key, self.target_repo)
            files = self.repository.download(key, self.target_repo)
        else:
            logger.info("从上游代理下载: %s", key)
            files = self.upstream.download(key)
        return self.local_cache.store(key, files), in_repo
