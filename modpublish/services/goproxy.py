"""GOPROXY 协议客户端与制品库适配

GOPROXY 协议（上游代理和制品库的 Go 仓库都支持）:
    GET <base>/<转义路径>/@v/<转义版本>.mod
    GET <base>/<转义路径>/@v/<转义版本>.zip
    GET <base>/<转义路径>/@v/<转义版本>.info

制品库的 Go 仓库挂在 <url>/api/go/<repo> 下，发布通过对同一路径 PUT 完成。
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from datetime import datetime, timezone

from modpublish.core.dep.models import ModuleFiles, ModuleKey, Package
from modpublish.core.exceptions import RepositoryError
from modpublish.utils.net import join_url, validate_url_scheme

logger = logging.getLogger(__name__)


def generate_info(version: str) -> bytes:
    """本地没有 .info 时生成最小内容"""
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return json.dumps({"Version": version, "Time": now}).encode("utf-8")


class GoProxyClient:
    """按 GOPROXY 协议读写单个 base URL"""

    def __init__(self, base_url: str, *, token: str = "", timeout: int = 60) -> None:
        validate_url_scheme(base_url, context="GOPROXY base_url")
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def url_for(self, key: ModuleKey, ext: str) -> str:
        return join_url(self.base_url, key.path, "@v", f"{key.escaped_version}.{ext}")

    def request(
        self, url: str, *,
        method: str = "GET",
        data: bytes | None = None,
        content_type: str = "",
    ) -> bytes:
        req = urllib.request.Request(url, data=data, method=method)
        if self.token:
            req.add_header("Authorization", f"Bearer {self.token}")
        if content_type:
            req.add_header("Content-Type", content_type)
        logger.debug("HTTP %s %s", method, url)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # nosec B310
                return resp.read()
        except urllib.error.HTTPError as e:
            raise RepositoryError(
                f"HTTP 错误 {e.code} ({method} {url}): {e.reason}", status=e.code,
            ) from e
        except (urllib.error.URLError, OSError) as e:
            reason = getattr(e, "reason", e)
            raise RepositoryError(f"网络错误 ({method} {url}): {reason}") from e

    def get(self, key: ModuleKey, ext: str) -> bytes:
        return self.request(self.url_for(key, ext))

    def has(self, key: ModuleKey, ext: str = "mod") -> bool:
        """HEAD 探测；404/410 视为不存在，其它错误向上抛出"""
        try:
            self.request(self.url_for(key, ext), method="HEAD")
        except RepositoryError as e:
            if e.not_found:
                return False
            raise
        return True

    def download(self, key: ModuleKey) -> ModuleFiles:
        mod = self.get(key, "mod")
        archive = self.get(key, "zip")
        try:
            info: bytes | None = self.get(key, "info")
        except RepositoryError as e:
            if not e.not_found:
                raise
            info = None
        return ModuleFiles(mod=mod, zip=archive, info=info)


class ArtifactoryRepository:
    """目标制品库（Go 仓库）"""

    def __init__(self, url: str, *, token: str = "", timeout: int = 60) -> None:
        validate_url_scheme(url, context="repository url")
        self.url = url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def client(self, target_repo: str) -> GoProxyClient:
        return GoProxyClient(
            join_url(self.url, "api", "go", target_repo),
            token=self.token, timeout=self.timeout,
        )

    def exists(self, key: ModuleKey, target_repo: str) -> bool:
        return self.client(target_repo).has(key)

    def fetch_manifest(self, key: ModuleKey, target_repo: str) -> bytes:
        return self.client(target_repo).get(key, "mod")

    def download(self, key: ModuleKey, target_repo: str) -> ModuleFiles:
        return self.client(target_repo).download(key)

    def publish(self, package: Package, target_repo: str) -> None:
        """上传 zip / mod / info 三个文件"""
        if package.archive_location is None:
            raise RepositoryError(f"{package.id} 没有可上传的归档")
        key = package.key
        client = self.client(target_repo)

        archive = package.archive_location.read_bytes()
        if package.info_location is not None and package.info_location.is_file():
            info = package.info_location.read_bytes()
        else:
            info = generate_info(key.version)

        uploads = (
            ("zip", archive, "application/zip"),
            ("mod", package.manifest_content, "text/plain"),
            ("info", info, "application/json"),
        )
        for ext, body, content_type in uploads:
            client.request(
                client.url_for(key, ext), method="PUT",
                data=body, content_type=content_type,
            )
        logger.debug("已上传 %s 到 %s", key, client.base_url)
