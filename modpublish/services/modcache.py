"""本地模块缓存

目录布局与 go 的下载缓存一致:
    <root>/<转义路径各段>/@v/<转义版本>.mod
    <root>/<转义路径各段>/@v/<转义版本>.zip
    <root>/<转义路径各段>/@v/<转义版本>.info
"""

from __future__ import annotations

import logging
from pathlib import Path

from modpublish.core.dep.models import ModuleFiles, ModuleKey, Package
from modpublish.core.exceptions import DependencyError
from modpublish.utils.yaml_io import atomic_write_bytes

logger = logging.getLogger(__name__)


class LocalModuleCache:
    """按 go 下载缓存布局读写 .mod / .zip / .info"""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def version_dir(self, key: ModuleKey) -> Path:
        return self.root.joinpath(*key.path.split("/"), "@v")

    def file_path(self, key: ModuleKey, ext: str) -> Path:
        return self.version_dir(key) / f"{key.escaped_version}.{ext}"

    def manifest_path(self, key: ModuleKey) -> Path:
        return self.file_path(key, "mod")

    def archive_path(self, key: ModuleKey) -> Path:
        return self.file_path(key, "zip")

    def info_path(self, key: ModuleKey) -> Path:
        return self.file_path(key, "info")

    def load(self, key: ModuleKey) -> Package | None:
        """zip 不存在时返回 None；.mod 缺失视为空 go.mod"""
        archive = self.archive_path(key)
        if not archive.is_file():
            return None
        manifest = self.read_manifest(key) or b""
        info = self.info_path(key)
        return Package(
            key=key,
            manifest_content=manifest,
            archive_location=archive,
            info_location=info if info.is_file() else None,
        )

    def read_manifest(self, key: ModuleKey) -> bytes | None:
        path = self.manifest_path(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def write_manifest(self, key: ModuleKey, content: bytes) -> None:
        path = self.manifest_path(key)
        atomic_write_bytes(path, content)
        logger.debug("已写入本地缓存 go.mod: %s", path)

    def store(self, key: ModuleKey, files: ModuleFiles) -> Package:
        """写入下载得到的模块文件并返回对应 Package"""
        atomic_write_bytes(self.archive_path(key), files.zip)
        atomic_write_bytes(self.manifest_path(key), files.mod)
        if files.info is not None:
            atomic_write_bytes(self.info_path(key), files.info)
        package = self.load(key)
        if package is None:
            raise DependencyError(f"写入本地缓存后仍找不到归档: {self.archive_path(key)}")
        logger.info("已缓存 %s -> %s", key, self.version_dir(key))
        return package
