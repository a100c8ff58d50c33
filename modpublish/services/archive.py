"""模块归档解压

Go 模块 zip 内所有条目都以 '<模块路径>@<版本>/' 为前缀。
每个包解压到 work_dir 下独占的临时目录（目录名以 path@version 为前缀），
不同包、同一包的并行解压都不会冲突。
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
import zipfile
from pathlib import Path

from modpublish.core.dep.models import Package, Workspace
from modpublish.core.exceptions import DependencyError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_.@!\-]+")


class ZipArchiveStore:
    """zip 归档 → 临时工作目录"""

    def __init__(self, work_dir: str | Path) -> None:
        self.work_dir = Path(work_dir)

    def unpack(self, package: Package) -> Workspace:
        archive = package.archive_location
        if archive is None or not archive.is_file():
            raise DependencyError(f"{package.id} 的归档不存在: {archive}")

        key = package.key
        self.work_dir.mkdir(parents=True, exist_ok=True)
        prefix = _UNSAFE_CHARS_RE.sub("_", f"{key.path}@{key.version}") + "-"
        root = Path(tempfile.mkdtemp(prefix=prefix, dir=str(self.work_dir)))

        try:
            with zipfile.ZipFile(archive) as zf:
                # ZipFile.extractall 会剥离绝对路径和 '..'，条目不会逃出 root
                zf.extractall(path=str(root))
        except (OSError, zipfile.BadZipFile) as e:
            shutil.rmtree(root, ignore_errors=True)
            raise DependencyError(f"解压失败 {archive}: {e}") from e

        module_dir = root / f"{key.module_name}@{key.version}"
        if not module_dir.is_dir():
            shutil.rmtree(root, ignore_errors=True)
            raise DependencyError(
                f"归档 {archive} 中缺少模块目录 {key.module_name}@{key.version}/"
            )
        logger.debug("已解压 %s -> %s", package.id, module_dir)
        return Workspace(root=root, module_dir=module_dir)

    def cleanup(self, workspace: Workspace) -> None:
        try:
            shutil.rmtree(workspace.root)
        except OSError as e:
            logger.error("删除临时目录 %s 失败: %s", workspace.root, e)
