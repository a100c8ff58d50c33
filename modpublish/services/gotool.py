"""go 工具链适配器

在包的工作目录中执行 go mod init / tidy / graph，并负责 go.sum 的暂存与恢复。
命令通过 CommandExecutor 执行，测试时可替换为假实现。
"""

from __future__ import annotations

import logging
import os
import stat
import subprocess

from modpublish.core.dep.models import Workspace
from modpublish.core.exceptions import ExecutionError
from modpublish.utils.shell import CommandExecutor, CommandResult, LocalExecutor

logger = logging.getLogger(__name__)


def parse_graph(output: str) -> set[str]:
    """解析 go mod graph 输出，每行 '<依赖方> <被依赖方>'，只取被依赖方"""
    deps: set[str] = set()
    for line in output.splitlines():
        parts = line.split()
        if len(parts) == 2:
            deps.add(parts[1])
    return deps


class GoToolAdapter:
    """go 命令适配器"""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        *,
        go_binary: str = "go",
        proxy: str = "",
        timeout: int | None = None,
    ) -> None:
        self.executor = executor or LocalExecutor()
        self.go_binary = go_binary
        self.proxy = proxy
        self.timeout = timeout

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        # 不继承调用方的 GOPROXY，避免 tidy 时从目标制品库回环拉取
        env.pop("GOPROXY", None)
        if self.proxy:
            env["GOPROXY"] = self.proxy
        env["GOFLAGS"] = "-mod=mod"
        return env

    def _run(self, args: list[str], workspace: Workspace) -> CommandResult:
        cmd = [self.go_binary, *args]
        label = " ".join(["go", *args[:2]])
        logger.debug("  %s (cwd=%s)", " ".join(cmd), workspace.module_dir)
        try:
            r = self.executor.execute(
                cmd, cwd=str(workspace.module_dir),
                env=self._env(), timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise ExecutionError(f"{label} 执行失败: {e}") from e
        if not r.success:
            raise ExecutionError(f"{label} 失败 (rc={r.returncode}): {r.stderr[:500]}")
        return r

    def init(self, workspace: Workspace, module_name: str, edit_message: str) -> None:
        """go mod init，并在生成的 go.mod 顶部写入生成标记"""
        self._run(["mod", "init", module_name], workspace)
        path = workspace.manifest_path
        try:
            content = path.read_bytes()
            path.write_bytes(f"{edit_message}\n\n".encode() + content)
        except OSError as e:
            raise ExecutionError(f"写入生成标记失败 {path}: {e}") from e

    def tidy(self, workspace: Workspace) -> None:
        self._run(["mod", "tidy"], workspace)

    def compute_graph(self, workspace: Workspace) -> set[str]:
        r = self._run(["mod", "graph"], workspace)
        return parse_graph(r.stdout)

    def extract_lock_file(self, workspace: Workspace) -> tuple[bytes, int | None]:
        path = workspace.lock_path
        if not path.exists():
            return b"", None
        content = path.read_bytes()
        mode = path.stat().st_mode
        path.unlink()
        return content, mode

    def restore_lock_file(self, workspace: Workspace, content: bytes, mode: int) -> None:
        path = workspace.lock_path
        path.write_bytes(content)
        os.chmod(path, stat.S_IMODE(mode))
