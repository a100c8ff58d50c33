"""测试公共夹具

go 命令、制品库、上游代理用内存假实现替代；解压、本地模块缓存、
go 适配器（go.sum 暂存等）仍走真实代码。
"""

from __future__ import annotations

import io
import threading
import zipfile
from pathlib import Path

import pytest

from modpublish.core.dep.cache import DependencyCache
from modpublish.core.dep.fetcher import PackageFetcher
from modpublish.core.dep.matcher import ManifestMatcher
from modpublish.core.dep.models import ModuleFiles, ModuleKey, Package, TidyMode
from modpublish.core.dep.resolver import ResolveContext, Resolver, create_resolver
from modpublish.core.exceptions import RepositoryError
from modpublish.services.archive import ZipArchiveStore
from modpublish.services.gotool import GoToolAdapter
from modpublish.services.modcache import LocalModuleCache
from modpublish.services.vendor_service import VendorService
from modpublish.utils.shell import CommandResult

MARKER = "// Generated by modpublish"
TARGET_REPO = "go-local"


def module_zip(key: ModuleKey, files: dict[str, str] | None = None) -> bytes:
    """构造带 '<module>@<version>/' 前缀的模块 zip"""
    buf = io.BytesIO()
    prefix = f"{key.module_name}@{key.version}/"
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in (files or {"main.go": "package main\n"}).items():
            zf.writestr(prefix + name, content)
    return buf.getvalue()


def module_files(key: ModuleKey, mod: str = "", files: dict[str, str] | None = None) -> ModuleFiles:
    return ModuleFiles(mod=mod.encode(), zip=module_zip(key, files))


class FakeGo:
    """模拟 go mod init / tidy / graph 的 CommandExecutor

    graphs: 'path@version' -> 该模块 go mod graph 输出的依赖边
    fail:   需要失败的子命令集合，如 {"init", "graph"}
    """

    def __init__(self, work_dir: Path) -> None:
        self.work_dir = work_dir
        self.graphs: dict[str, list[str]] = {}
        self.fail: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.envs: list[dict[str, str]] = []
        self._lock = threading.Lock()

    def _edge(self, module_dir: Path) -> str:
        try:
            rel = module_dir.relative_to(self.work_dir)
        except ValueError:
            return str(module_dir)
        return "/".join(rel.parts[1:])

    def commands(self, sub: str) -> list[str]:
        """某个子命令被调用时所在的模块"""
        return [edge for s, edge in self.calls if s == sub]

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        sub = cmd[2]
        module_dir = Path(cwd)
        edge = self._edge(module_dir)
        with self._lock:
            self.calls.append((sub, edge))
            self.envs.append(dict(env or {}))
        if sub in self.fail:
            return CommandResult(1, "", f"go mod {sub}: simulated failure")

        module = edge.rsplit("@", 1)[0]
        deps = self.graphs.get(edge, [])
        if sub == "init":
            (module_dir / "go.mod").write_text(f"module {cmd[3]}\n")
        elif sub == "tidy":
            lines = [f"module {module}", "", "require ("]
            lines += [f"\t{d.replace('@', ' ')}" for d in deps]
            lines += [")", ""]
            (module_dir / "go.mod").write_text("\n".join(lines))
        elif sub == "graph":
            return CommandResult(0, "".join(f"{module} {d}\n" for d in deps), "")
        return CommandResult(0, "", "")


class FakeRepository:
    """内存制品库，记录每次发布的 go.mod"""

    def __init__(self) -> None:
        self.modules: dict[ModuleKey, ModuleFiles] = {}
        self.published: list[tuple[ModuleKey, bytes]] = []
        self.fail_publish: set[ModuleKey] = set()
        self._lock = threading.Lock()

    def add(self, key: ModuleKey, mod: str = "") -> None:
        self.modules[key] = module_files(key, mod)

    def published_keys(self) -> list[ModuleKey]:
        return [k for k, _ in self.published]

    def manifest_of(self, key: ModuleKey) -> bytes:
        return next(content for k, content in self.published if k == key)

    def publish(self, package: Package, target_repo: str) -> None:
        assert target_repo == TARGET_REPO
        if package.key in self.fail_publish:
            raise RepositoryError(f"HTTP 错误 500: {package.id}", status=500)
        with self._lock:
            self.published.append((package.key, package.manifest_content))
            self.modules[package.key] = ModuleFiles(
                mod=package.manifest_content,
                zip=package.archive_location.read_bytes() if package.archive_location else b"",
            )

    def fetch_manifest(self, key: ModuleKey, target_repo: str) -> bytes:
        return self.download(key, target_repo).mod

    def exists(self, key: ModuleKey, target_repo: str) -> bool:
        return key in self.modules

    def download(self, key: ModuleKey, target_repo: str) -> ModuleFiles:
        if key not in self.modules:
            raise RepositoryError(f"HTTP 错误 404: {key}", status=404)
        return self.modules[key]


class FakeUpstream:
    """内存上游代理"""

    def __init__(self) -> None:
        self.modules: dict[ModuleKey, ModuleFiles] = {}
        self.downloads: list[ModuleKey] = []

    def add(self, key: ModuleKey, mod: str = "") -> None:
        self.modules[key] = module_files(key, mod)

    def download(self, key: ModuleKey) -> ModuleFiles:
        self.downloads.append(key)
        if key not in self.modules:
            raise RepositoryError(f"HTTP 错误 404: {key}", status=404)
        return self.modules[key]


class Harness:
    """一次解析运行所需的全部协作者"""

    def __init__(self, tmp_path: Path) -> None:
        self.tmp_path = tmp_path
        self.work_dir = tmp_path / "work"
        self.modcache = LocalModuleCache(tmp_path / "modcache")
        self.go = FakeGo(self.work_dir)
        self.repo = FakeRepository()
        self.upstream = FakeUpstream()
        self.matcher = ManifestMatcher(MARKER)
        self.build_tool = GoToolAdapter(self.go, proxy="https://proxy.golang.org")
        self.archives = ZipArchiveStore(self.work_dir)
        self.cache = DependencyCache()
        self.ctx = self.context()

    def context(self, tidy_mode: TidyMode = TidyMode.TIDY) -> ResolveContext:
        return ResolveContext(
            cache=self.cache,
            matcher=self.matcher,
            archives=self.archives,
            build_tool=self.build_tool,
            repository=self.repo,
            local_cache=self.modcache,
            fetcher=PackageFetcher(self.modcache, self.repo, self.upstream, TARGET_REPO),
            target_repo=TARGET_REPO,
            edit_message=MARKER,
            tidy_mode=tidy_mode,
        )

    def add_local(
        self, edge: str, mod: str = "", files: dict[str, str] | None = None,
        deps: list[str] | None = None,
    ) -> ModuleKey:
        """放入本地模块缓存，deps 为该模块 go mod graph 的输出"""
        key = ModuleKey.parse_edge(edge)
        self.modcache.store(key, module_files(key, mod, files))
        if deps is not None:
            self.go.graphs[edge] = deps
        return key

    def resolver(self, edge: str) -> Resolver:
        package = self.modcache.load(ModuleKey.parse_edge(edge))
        assert package is not None
        node = create_resolver(package, self.ctx)
        assert isinstance(node, Resolver)
        return node

    def vendor(self, **kwargs: object) -> VendorService:
        params: dict[str, object] = {
            "repository": self.repo,
            "upstream": self.upstream,
            "local_cache": self.modcache,
            "archives": self.archives,
            "build_tool": self.build_tool,
            "target_repo": TARGET_REPO,
            "matcher": self.matcher,
            "edit_message": MARKER,
        }
        params.update(kwargs)
        return VendorService(**params)  # type: ignore[arg-type]


@pytest.fixture()
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path)
