"""发布台账测试"""

from __future__ import annotations

import threading
from pathlib import Path

import yaml

from modpublish.core.dep.cache import CacheStats, DependencyCache
from modpublish.core.dep.models import ModuleKey

A = ModuleKey("example.com/a", "v1.0.0")
B = ModuleKey("example.com/b", "v2.0.0")


class TestStatus:
    def test_lookup_unknown(self) -> None:
        assert DependencyCache().lookup(A) == (False, False)

    def test_claim_once(self) -> None:
        cache = DependencyCache()
        assert cache.claim(A) is True
        assert cache.claim(A) is False
        assert cache.lookup(A) == (False, True)

    def test_never_downgraded(self) -> None:
        cache = DependencyCache()
        cache.mark_published(A)
        cache.mark_seen(A, False)
        assert cache.is_published(A)
        assert cache.claim(A) is False

    def test_mark_seen_upgrades(self) -> None:
        cache = DependencyCache()
        cache.claim(A)
        cache.mark_seen(A, True)
        assert cache.lookup(A) == (True, True)

    def test_release(self) -> None:
        cache = DependencyCache()
        cache.claim(A)
        cache.release(A)
        assert cache.lookup(A) == (False, False)

        cache.mark_published(B)
        cache.release(B)
        assert cache.is_published(B)

    def test_published_keys_sorted(self) -> None:
        cache = DependencyCache()
        cache.mark_published(B)
        cache.mark_published(A)
        cache.claim(ModuleKey("example.com/c", "v1.0.0"))
        assert cache.published_keys() == [A, B]
        assert len(cache) == 3

    def test_concurrent_claim(self) -> None:
        """并发认领同一标识只有一个成功"""
        cache = DependencyCache()
        results: list[bool] = []
        lock = threading.Lock()
        barrier = threading.Barrier(16)

        def worker() -> None:
            barrier.wait()
            ok = cache.claim(A)
            with lock:
                results.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(True) == 1


class TestCounters:
    def test_stats(self) -> None:
        cache = DependencyCache()
        cache.increment_total(3)
        cache.increment_success()
        cache.increment_skipped()
        cache.increment_failure(B)

        stats = cache.stats()
        assert stats == CacheStats(total=3, successes=2, failures=1, skipped=1, failed=[B.id])
        assert stats.published == 1

    def test_failure_without_key(self) -> None:
        cache = DependencyCache()
        cache.increment_failure()
        assert cache.stats().failures == 1
        assert cache.stats().failed == []

    def test_failure_with_raw_edge(self) -> None:
        """无法解析的边按原文记录"""
        cache = DependencyCache()
        cache.increment_total()
        cache.increment_failure("garbage")
        stats = cache.stats()
        assert stats.failed == ["garbage"]
        assert stats.total == stats.successes + stats.failures

    def test_concurrent_increments(self) -> None:
        cache = DependencyCache()

        def worker() -> None:
            for _ in range(500):
                cache.increment_total()
                cache.increment_success()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        stats = cache.stats()
        assert stats.total == stats.successes == 4000


class TestPersistence:
    def test_save_only_published(self, tmp_path: Path) -> None:
        path = tmp_path / "ledger.yml"
        cache = DependencyCache()
        cache.mark_published(B)
        cache.mark_published(A)
        cache.claim(ModuleKey("example.com/c", "v1.0.0"))
        cache.save(path)

        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert data == {"published": [A.id, B.id]}

    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "ledger.yml"
        path.write_text(yaml.dump({"published": [A.id, "bad-entry", "x:y:z", B.id]}))

        cache = DependencyCache.load(path)
        assert cache.published_keys() == [A, B]
        assert cache.stats().total == 0

    def test_load_missing_or_empty(self, tmp_path: Path) -> None:
        assert len(DependencyCache.load(tmp_path / "missing.yml")) == 0
        empty = tmp_path / "empty.yml"
        empty.write_text("published:\n")
        assert len(DependencyCache.load(empty)) == 0
