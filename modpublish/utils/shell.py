"""子进程执行抽象

通过 CommandExecutor 协议抽象 go 命令的执行，测试时可注入假实现，
无需 patch subprocess。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class CommandExecutor(Protocol):
    """命令执行器协议"""

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """执行命令并返回结果；超时抛出 subprocess.TimeoutExpired"""
        ...


class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        logger.debug("执行: %s (cwd=%s)", " ".join(cmd), cwd)
        r = subprocess.run(
            cmd, capture_output=True, text=True,
            cwd=cwd, env=env, check=False, timeout=timeout,
        )
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )
