"""网络工具 — URL 安全校验与发现页地址拼接"""

from __future__ import annotations

from urllib.parse import urlparse

from vendorkit.core.exceptions import ValidationError

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


def discovery_url(module_path: str, param: str = "go-get") -> str:
    """拼接模块路径的发现页地址，已有查询串时追加参数"""
    url = "https://" + module_path
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{param}=1"
