"""依赖解析与发布引擎

- models.py: ModuleKey / Package / Workspace / go.mod 生命周期状态
- modpath.py: 模块路径大小写转义
- matcher.py: go.mod 空判定与生成标记识别
- cache.py: 线程安全的发布台账
- fetcher.py: 本地缓存优先的依赖落地
- resolver.py: 逐包状态机与传递依赖展开
"""

from modpublish.core.dep.cache import CacheStats, DependencyCache
from modpublish.core.dep.fetcher import PackageFetcher
from modpublish.core.dep.matcher import ManifestMatcher
from modpublish.core.dep.models import ModuleFiles, ModuleKey, Package, TidyMode, Workspace
from modpublish.core.dep.resolver import (
    NodeRegistry,
    PublishOnlyResolver,
    ResolveContext,
    Resolver,
    create_resolver,
    expand_edges,
)

__all__ = [
    "CacheStats",
    "DependencyCache",
    "ManifestMatcher",
    "ModuleFiles",
    "ModuleKey",
    "NodeRegistry",
    "Package",
    "PackageFetcher",
    "PublishOnlyResolver",
    "ResolveContext",
    "Resolver",
    "TidyMode",
    "Workspace",
    "create_resolver",
    "expand_edges",
]
