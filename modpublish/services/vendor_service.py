"""顶层发布服务

把一批根模块（显式指定或取自项目的 go mod graph）及其全部传递依赖发布到目标制品库:

  1. 加载台账，构造共享的 ResolveContext
  2. 根模块按与传递依赖相同的规则认领、落地
  3. 根节点在线程池中并行处理，各自深度优先递归；台账是唯一共享的可变状态
  4. 保存台账，返回汇总

单个分支失败不会中断其它分支，结果以汇总中的计数为准。
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from modpublish.core.dep.cache import DependencyCache
from modpublish.core.dep.fetcher import PackageFetcher
from modpublish.core.dep.matcher import ManifestMatcher
from modpublish.core.dep.models import ModuleKey, TidyMode, Workspace
from modpublish.core.dep.resolver import BRANCH_ERRORS, ResolveContext, expand_edges
from modpublish.core.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from modpublish.core.protocols import (
        ArchiveStore,
        ArtifactRepository,
        BuildToolAdapter,
        ModuleCacheStore,
        ModuleSource,
    )

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """一次发布运行的结果汇总"""

    total: int = 0
    successes: int = 0
    failures: int = 0
    skipped: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def published(self) -> int:
        return self.successes - self.skipped

    @property
    def success(self) -> bool:
        return self.failures == 0

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "successes": self.successes,
            "failures": self.failures,
            "skipped": self.skipped,
            "published": self.published,
            "failed": list(self.failed),
        }


class VendorService:
    """依赖递归发布服务"""

    def __init__(
        self,
        *,
        repository: ArtifactRepository,
        upstream: ModuleSource,
        local_cache: ModuleCacheStore,
        archives: ArchiveStore,
        build_tool: BuildToolAdapter,
        target_repo: str,
        matcher: ManifestMatcher | None = None,
        edit_message: str = "",
        tidy_mode: TidyMode = TidyMode.TIDY,
        max_workers: int = 4,
        ledger_file: str = "",
    ) -> None:
        self.repository = repository
        self.upstream = upstream
        self.local_cache = local_cache
        self.archives = archives
        self.build_tool = build_tool
        self.target_repo = target_repo
        self.matcher = matcher or ManifestMatcher()
        self.edit_message = edit_message or self.matcher.edit_marker
        self.tidy_mode = TidyMode(tidy_mode)
        self.max_workers = max(1, max_workers)
        self.ledger_file = ledger_file

    def new_context(self, cache: DependencyCache) -> ResolveContext:
        fetcher = PackageFetcher(
            self.local_cache, self.repository, self.upstream, self.target_repo,
        )
        return ResolveContext(
            cache=cache,
            matcher=self.matcher,
            archives=self.archives,
            build_tool=self.build_tool,
            repository=self.repository,
            local_cache=self.local_cache,
            fetcher=fetcher,
            target_repo=self.target_repo,
            edit_message=self.edit_message,
            tidy_mode=self.tidy_mode,
        )

    def project_modules(self, project_dir: str | Path) -> set[str]:
        """项目的全部依赖边（go mod graph），失败抛出 ExecutionError"""
        project = Path(project_dir)
        edges = self.build_tool.compute_graph(Workspace(root=project, module_dir=project))
        logger.info("项目 %s 共有 %d 个依赖", project, len(edges))
        return edges

    def load_cache(self) -> DependencyCache:
        if self.ledger_file:
            return DependencyCache.load(self.ledger_file)
        return DependencyCache()

    @staticmethod
    def _split_published(cache: DependencyCache, modules: Iterable[str]) -> tuple[list[str], int]:
        """台账中已发布的根模块直接计为跳过，无法解析的计为失败

        返回 (待展开的边, 跳过数)
        """
        pending: list[str] = []
        known: set[ModuleKey] = set()
        for edge in modules:
            try:
                key = ModuleKey.parse_edge(edge)
            except ValidationError as e:
                logger.warning("无法解析根模块 %s: %s", edge, e)
                cache.increment_total()
                cache.increment_failure(edge)
                continue
            if cache.is_published(key):
                known.add(key)
            else:
                pending.append(edge)
        if known:
            logger.info("台账中已发布 %d 个根模块，跳过", len(known))
        return pending, len(known)

    def _save_ledger(self, cache: DependencyCache) -> None:
        if not self.ledger_file:
            return
        try:
            cache.save(self.ledger_file)
        except OSError as e:
            logger.error("保存台账失败 %s: %s", self.ledger_file, e)

    def run(self, modules: Iterable[str], cache: DependencyCache | None = None) -> RunSummary:
        """发布给定的 'path@version' 模块及其传递依赖"""
        cache = cache if cache is not None else self.load_cache()
        ctx = self.new_context(cache)

        pending_edges, known = self._split_published(cache, modules)
        roots = expand_edges(ctx, pending_edges)
        cache.increment_total(len(roots) + known)
        for _ in range(known):
            cache.increment_skipped()
        logger.info(
            "开始发布 %d 个根模块到 %s (mode=%s, workers=%d)",
            len(roots), self.target_repo, self.tidy_mode.value, self.max_workers,
        )

        pending = []
        for key in roots:
            if cache.is_published(key):
                logger.debug("%s 已存在于制品库，跳过", key)
                cache.increment_skipped()
            else:
                pending.append(ctx.nodes.get(key))

        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {executor.submit(node.populate_and_publish): node for node in pending}
                for future, node in futures.items():
                    try:
                        future.result()
                    except BRANCH_ERRORS as e:
                        logger.error("处理失败 %s: %s", node.key, e, extra={"module_key": node.key})
                        cache.increment_failure(node.key)
        finally:
            self._save_ledger(cache)

        stats = cache.stats()
        summary = RunSummary(
            total=stats.total,
            successes=stats.successes,
            failures=stats.failures,
            skipped=stats.skipped,
            failed=stats.failed,
        )
        logger.info(
            "发布汇总: 共 %d, 成功 %d (其中跳过 %d), 失败 %d",
            summary.total, summary.successes, summary.skipped, summary.failures,
        )
        return summary
