"""日志脱敏工具：避免 homeserver 地址中的凭据与 access token 写入日志。"""

from urllib.parse import urlparse

TOKEN_VISIBLE_LENGTH = 4


def mask_url(url: str) -> str:
    """
    脱敏 URL 用于日志输出。

    仅保留协议、主机名和路径，丢弃 userinfo、端口、query、fragment。
    """
    try:
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.hostname:
            return "[url_masked]"
        return f"{parsed.scheme}://{parsed.hostname}{parsed.path}"
    except (ValueError, TypeError, AttributeError):
        return "[url_masked]"


def mask_token(token: str) -> str:
    """只保留 token 末尾几位，便于排查是否配置了正确的凭据。"""
    if len(token) <= TOKEN_VISIBLE_LENGTH * 2:
        return "***"
    return f"***{token[-TOKEN_VISIBLE_LENGTH:]}"
