"""依赖解析与发布引擎

每个 Resolver 节点对应一个包，populate_and_publish() 按顺序执行:

  1. 已发布时用制品库中的 go.mod 覆盖内存内容，获取失败计为失败并放弃该分支
  2. 解压到独占的临时工作目录
  3. 判断 go.mod 是否为空
  4. 非空: 直接写入工作目录并删除 go.sum
  5. 空且未发布: go mod init（失败则直接写入已知内容）；仍为空则 go mod tidy，
     记下 tidy 之前的内容
  6. 空但已发布: 原样使用，不执行 tidy
  7. go mod graph 计算依赖图
  8. 暂存 go.sum，把依赖图展开为子节点，再恢复 go.sum
  9. 未发布且 go.mod 非空或带生成标记时写入本地模块缓存
 10. 深度优先处理子节点，已发布的子节点只计数
 11. 若经过 tidy，回退到 tidy 之前的内容（加生成标记）
 12. 发布，成功后才在台账中标记为已发布
 13. 删除临时工作目录

tidy 的输出只用于计算依赖图，永远不会作为发布的 go.mod。
同一模块标识在全局只会有一个节点，节点登记在 NodeRegistry 中，
父节点只保存子节点的 ModuleKey。
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from modpublish.core.dep.models import (
    Draft,
    ManifestState,
    ModuleKey,
    Package,
    Populated,
    Published,
    TidyGenerated,
    TidyMode,
    Workspace,
)
from modpublish.core.exceptions import (
    DependencyError,
    ExecutionError,
    RepositoryError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from modpublish.core.dep.cache import DependencyCache
    from modpublish.core.dep.fetcher import PackageFetcher
    from modpublish.core.dep.matcher import ManifestMatcher
    from modpublish.core.protocols import (
        ArchiveStore,
        ArtifactRepository,
        BuildToolAdapter,
        ModuleCacheStore,
    )

logger = logging.getLogger(__name__)

# 单个分支失败时吞掉的异常类型，其余异常视为程序错误向上抛出
BRANCH_ERRORS = (DependencyError, RepositoryError, ValidationError, OSError)


class NodeRegistry:
    """按 ModuleKey 登记解析节点，同一标识只保留一个节点"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._nodes: dict[ModuleKey, BaseResolver] = {}

    def register(self, node: BaseResolver) -> BaseResolver:
        """登记节点；已有同标识节点时返回已有节点"""
        with self._lock:
            return self._nodes.setdefault(node.key, node)

    def get(self, key: ModuleKey) -> BaseResolver:
        with self._lock:
            return self._nodes[key]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._nodes

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)


@dataclass
class ResolveContext:
    """一次解析运行内所有节点共享的句柄"""

    cache: DependencyCache
    matcher: ManifestMatcher
    archives: ArchiveStore
    build_tool: BuildToolAdapter
    repository: ArtifactRepository
    local_cache: ModuleCacheStore
    fetcher: PackageFetcher
    target_repo: str
    edit_message: str
    tidy_mode: TidyMode = TidyMode.TIDY
    nodes: NodeRegistry = field(default_factory=NodeRegistry)


def create_resolver(package: Package, ctx: ResolveContext) -> BaseResolver:
    """按 tidy 模式创建节点并登记"""
    node: BaseResolver
    if ctx.tidy_mode == TidyMode.NONE:
        node = PublishOnlyResolver(package, ctx)
    else:
        node = Resolver(package, ctx)
    return ctx.nodes.register(node)


def expand_edges(ctx: ResolveContext, edges: Iterable[str], parent: str = "") -> list[ModuleKey]:
    """把 'path@version' 边展开为节点，返回新认领的标识列表

    - 格式错误的边记录警告后跳过
    - 已在台账中（认领或发布）的标识跳过，以此终止环并避免菱形依赖重复解析
    - 落地失败时撤销认领，计入总数与失败数后跳过，不影响其它边
    - 成功时台账状态设为制品库探测结果
    """
    keys: list[ModuleKey] = []
    for edge in sorted(edges):
        try:
            key = ModuleKey.parse_edge(edge)
        except ValidationError as e:
            logger.warning("跳过无效依赖边 %r: %s", edge, e)
            continue

        if not ctx.cache.claim(key):
            logger.debug("依赖 %s 已处理过", edge)
            continue

        try:
            package, in_repo = ctx.fetcher.materialize(key)
        except BRANCH_ERRORS as e:
            ctx.cache.release(key)
            ctx.cache.increment_total()
            ctx.cache.increment_failure(key)
            logger.error("无法获取依赖 %s: %s", edge, e, extra={"module_key": key})
            continue

        if parent:
            logger.debug("%s 依赖 %s", parent, key)
        create_resolver(package, ctx)
        keys.append(key)
        ctx.cache.mark_seen(key, in_repo)
    return keys


class BaseResolver:
    """节点公共部分: 台账检查与发布"""

    def __init__(self, package: Package, ctx: ResolveContext) -> None:
        self.package = package
        self.ctx = ctx
        self.state: ManifestState = Draft()

    @property
    def key(self) -> ModuleKey:
        return self.package.key

    def populate_and_publish(self) -> bool:
        raise NotImplementedError

    def _publish(self) -> bool:
        """发布并在成功后标记台账，返回是否已处于发布状态"""
        cache = self.ctx.cache
        if cache.is_published(self.key):
            logger.debug("%s 已由其它分支发布", self.key)
            cache.increment_skipped()
            return True
        try:
            self.ctx.repository.publish(self.package, self.ctx.target_repo)
        except (RepositoryError, OSError) as e:
            logger.error("发布失败 %s: %s", self.key, e, extra={"module_key": self.key})
            cache.increment_failure(self.key)
            return False
        cache.mark_published(self.key)
        cache.increment_success()
        self.state = Published()
        logger.info("已发布: %s -> %s", self.key, self.ctx.target_repo)
        return True


class PublishOnlyResolver(BaseResolver):
    """不补全 go.mod、不递归，只把包按原样发布"""

    def populate_and_publish(self) -> bool:
        self.ctx.cache.claim(self.key)
        self.state = Populated()
        return self._publish()


class Resolver(BaseResolver):
    """补全 go.mod 并递归发布传递依赖"""

    def __init__(self, package: Package, ctx: ResolveContext) -> None:
        super().__init__(package, ctx)
        self.children: list[ModuleKey] = []

    def populate_and_publish(self) -> bool:
        ctx = self.ctx
        logger.debug("开始处理: %s", self.key)
        # 独立调用时也要占位，保证依赖环回到自身时不会重复解析
        ctx.cache.claim(self.key)
        published = ctx.cache.is_published(self.key)
        if published and not self._refresh_from_repository():
            ctx.cache.increment_failure(self.key)
            return False

        try:
            workspace = ctx.archives.unpack(self.package)
        except BRANCH_ERRORS as e:
            logger.error("解压失败 %s: %s", self.key, e, extra={"module_key": self.key})
            ctx.cache.increment_failure(self.key)
            return False

        try:
            try:
                graph = self._prepare_manifest(workspace, published)
            except BRANCH_ERRORS as e:
                logger.error("准备 go.mod 失败 %s: %s", self.key, e, extra={"module_key": self.key})
                ctx.cache.increment_failure(self.key)
                return False
            return self._publish_and_populate_transitive(workspace, graph, published)
        finally:
            ctx.archives.cleanup(workspace)

    # ------------------------------------------------------------------
    # go.mod 准备
    # ------------------------------------------------------------------

    def _is_empty(self) -> bool:
        return self.ctx.matcher.is_empty(self.package.manifest_content)

    def _prepare_manifest(self, workspace: Workspace, published: bool) -> set[str]:
        """按 go.mod 状态分支处理，返回依赖图"""
        empty = self._is_empty()
        logger.debug("%s 的 go.mod 为空: %s", self.key, empty)

        if not empty:
            logger.debug("go.mod 非空，直接使用: %s", self.key)
            self._write_manifest(workspace, self.package.manifest_content)
            self._remove_lock_file(workspace)
            self.state = Populated()
        elif not published:
            snapshot = self._bootstrap_manifest(workspace)
            if self._is_empty():
                logger.debug("go mod init 后 go.mod 仍为空，执行 tidy: %s", self.key)
                try:
                    self.ctx.build_tool.tidy(workspace)
                except ExecutionError as e:
                    logger.error("go mod tidy 失败 %s: %s", self.key, e)
                self.state = TidyGenerated(snapshot)
            else:
                logger.debug("go mod init 后 go.mod 非空: %s", self.key)
                self.state = Populated()
        else:
            self._write_manifest(workspace, self.package.manifest_content)
            self.state = Populated()

        return self._compute_graph(workspace)

    def _bootstrap_manifest(self, workspace: Workspace) -> bytes:
        """go mod init 生成 go.mod，返回执行前的内容"""
        original = self.package.manifest_content
        try:
            workspace.manifest_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("删除 go.mod 失败 %s: %s", workspace.manifest_path, e)
        try:
            self.ctx.build_tool.init(workspace, self.key.module_name, self.ctx.edit_message)
        except ExecutionError as e:
            logger.error("go mod init 失败 %s: %s", self.key, e)
            if not workspace.manifest_path.exists():
                self._write_manifest(workspace, original)
        try:
            self.package.set_manifest_content(workspace.manifest_path.read_bytes())
        except OSError as e:
            logger.error("读取 go.mod 失败 %s: %s", workspace.manifest_path, e)
        return original

    def _compute_graph(self, workspace: Workspace) -> set[str]:
        try:
            return self.ctx.build_tool.compute_graph(workspace)
        except ExecutionError as e:
            logger.error("go mod graph 失败 %s: %s", self.key, e)
            return set()

    def _write_manifest(self, workspace: Workspace, content: bytes) -> None:
        try:
            workspace.manifest_path.write_bytes(content)
        except OSError as e:
            logger.error("写入 go.mod 失败 %s: %s", workspace.manifest_path, e)

    def _remove_lock_file(self, workspace: Workspace) -> None:
        try:
            workspace.lock_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("删除 go.sum 失败 %s: %s", workspace.lock_path, e)

    def _refresh_from_repository(self) -> bool:
        """已发布的包以制品库中的 go.mod 为准，获取失败返回 False"""
        logger.debug("用制品库中的 go.mod 覆盖本地内容: %s", self.key)
        try:
            content = self.ctx.repository.fetch_manifest(self.key, self.ctx.target_repo)
        except (RepositoryError, OSError) as e:
            logger.error("获取制品库 go.mod 失败 %s: %s", self.key, e, extra={"module_key": self.key})
            return False
        self.package.set_manifest_content(content)
        self._persist_local()
        return True

    def _persist_local(self) -> None:
        try:
            self.ctx.local_cache.write_manifest(self.key, self.package.manifest_content)
        except (DependencyError, OSError) as e:
            logger.error("写入本地模块缓存失败 %s: %s", self.key, e)

    # ------------------------------------------------------------------
    # 传递依赖与发布
    # ------------------------------------------------------------------

    def _publish_and_populate_transitive(
        self, workspace: Workspace, graph: set[str], published: bool,
    ) -> bool:
        if graph:
            self._expand_with_lock_file_aside(workspace, graph)

        matcher = self.ctx.matcher
        content = self.package.manifest_content
        if not published and (not matcher.is_empty(content) or matcher.has_marker(content)):
            self._persist_local()

        self._populate_transitive()

        if not published and isinstance(self.state, TidyGenerated):
            self._revert_to_snapshot(workspace, self.state.snapshot)

        if published:
            self.ctx.cache.increment_skipped()
            return True
        return self._publish()

    def _expand_with_lock_file_aside(self, workspace: Workspace, graph: set[str]) -> None:
        build_tool = self.ctx.build_tool
        try:
            content, mode = build_tool.extract_lock_file(workspace)
        except OSError as e:
            logger.error("暂存 go.sum 失败 %s: %s", self.key, e)
            content, mode = b"", None

        self.children = expand_edges(self.ctx, graph, parent=self.key.id)

        if content and mode is not None:
            try:
                build_tool.restore_lock_file(workspace, content, mode)
            except OSError as e:
                logger.error("恢复 go.sum 失败 %s: %s", self.key, e)

    def _populate_transitive(self) -> None:
        if not self.children:
            return
        cache = self.ctx.cache
        cache.increment_total(len(self.children))
        for key in self.children:
            if cache.is_published(key):
                logger.debug("依赖 %s 已处理过", key)
                cache.increment_skipped()
                continue
            logger.debug("开始处理传递依赖: %s", key)
            self.ctx.nodes.get(key).populate_and_publish()

    def _revert_to_snapshot(self, workspace: Workspace, snapshot: bytes) -> None:
        """回退到 tidy 之前的 go.mod，缺少生成标记时补上"""
        logger.debug("回退到原始 go.mod: %s", self.key)
        if not self.ctx.matcher.has_marker(snapshot):
            snapshot = f"{self.ctx.edit_message}\n\n".encode() + snapshot
        self._write_manifest(workspace, snapshot)
        self.package.set_manifest_content(snapshot)
        self._persist_local()
        self.state = Populated()
