"""依赖发布台账

整个解析过程共享一个 DependencyCache，记录每个模块标识的状态:
  - 不存在: 从未见过
  - False:  已认领（正在解析或已存在于待处理列表），尚未发布
  - True:   已发布（或制品库中已存在），此后永不回退

所有读写都在同一把锁内完成；"检查是否见过，否则认领" 通过 claim()
作为单个原子操作提供，避免并行分支重复解析同一传递依赖。

发布成功的条目可以持久化到 YAML 台账，供下次运行复用。
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from modpublish.core.dep.models import ModuleKey
from modpublish.core.exceptions import ValidationError
from modpublish.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """计数器快照"""

    total: int = 0
    successes: int = 0
    failures: int = 0
    skipped: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def published(self) -> int:
        """本次真正发布成功的数量（successes 中包含跳过的已发布项）"""
        return self.successes - self.skipped


class DependencyCache:
    """线程安全的依赖状态表 + 进度计数器"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status: dict[ModuleKey, bool] = {}
        self._total = 0
        self._successes = 0
        self._failures = 0
        self._skipped = 0
        self._failed: list[str] = []

    # ---- 状态表 ----

    def lookup(self, key: ModuleKey) -> tuple[bool, bool]:
        """返回 (published, exists)"""
        with self._lock:
            if key not in self._status:
                return False, False
            return self._status[key], True

    def is_published(self, key: ModuleKey) -> bool:
        with self._lock:
            return self._status.get(key, False)

    def mark_seen(self, key: ModuleKey, published: bool) -> None:
        """记录状态；已发布的条目不会被降级"""
        with self._lock:
            if self._status.get(key):
                return
            self._status[key] = published

    def mark_published(self, key: ModuleKey) -> None:
        self.mark_seen(key, True)

    def claim(self, key: ModuleKey) -> bool:
        """原子地认领一个未见过的标识，已存在（无论是否发布）时返回 False"""
        with self._lock:
            if key in self._status:
                return False
            self._status[key] = False
            return True

    def release(self, key: ModuleKey) -> None:
        """撤销认领；已发布的条目保持不变"""
        with self._lock:
            if self._status.get(key) is False:
                del self._status[key]

    def published_keys(self) -> list[ModuleKey]:
        with self._lock:
            return sorted(
                (k for k, v in self._status.items() if v),
                key=lambda k: k.id,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._status)

    # ---- 计数器 ----

    def increment_total(self, n: int = 1) -> None:
        with self._lock:
            self._total += n

    def increment_success(self) -> None:
        with self._lock:
            self._successes += 1

    def increment_skipped(self) -> None:
        """已发布而跳过的节点，同时计入 successes"""
        with self._lock:
            self._successes += 1
            self._skipped += 1

    def increment_failure(self, key: ModuleKey | str | None = None) -> None:
        """key 可以是无法解析的原始依赖边"""
        with self._lock:
            self._failures += 1
            if key is not None:
                self._failed.append(str(key))

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                total=self._total,
                successes=self._successes,
                failures=self._failures,
                skipped=self._skipped,
                failed=list(self._failed),
            )

    # ---- 持久化 ----

    @classmethod
    def load(cls, path: str | Path) -> DependencyCache:
        """从台账加载已发布条目；无效条目记录警告后忽略"""
        cache = cls()
        data = load_yaml(path)
        for raw in data.get("published") or []:
            try:
                cache.mark_published(ModuleKey.parse_id(str(raw)))
            except ValidationError as e:
                logger.warning("台账条目无效，已忽略: %s (%s)", raw, e)
        if cache._status:
            logger.info("已从台账加载 %d 个已发布模块: %s", len(cache._status), path)
        return cache

    def save(self, path: str | Path) -> None:
        """只保存已发布条目，认领状态属于单次运行"""
        save_yaml(path, {"published": [k.id for k in self.published_keys()]})
        logger.info("台账已保存: %s", path)
