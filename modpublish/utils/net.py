"""网络工具 - URL 校验与拼接"""

from __future__ import annotations

from urllib.parse import quote, urlparse

from modpublish.core.exceptions import ValidationError

_ALLOWED_SCHEMES = frozenset(("http", "https"))


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )


def join_url(base: str, *parts: str) -> str:
    """拼接 URL 路径段，各段按路径规则转义（保留 '/' 与 '!'）"""
    segments = [base.rstrip("/")]
    segments.extend(quote(p.strip("/"), safe="/!@") for p in parts if p)
    return "/".join(segments)
