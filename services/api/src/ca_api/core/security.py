"""会话令牌原语与令牌提取工具。"""

import hashlib
import re
import secrets

from fastapi import HTTPException, status

UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="unauthorized",
)

_BEARER_PATTERN = re.compile(r"Bearer\s+([^,\s]+)", flags=re.IGNORECASE)


def generate_session_token(nbytes: int) -> str:
    """生成不透明的随机会话令牌。"""
    return secrets.token_hex(nbytes)


def hash_session_token(token: str) -> str:
    """令牌本身已是满熵随机值，单次 SHA-256 即可。"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _extract_bearer_token(authorization: str | None) -> str | None:
    """从 Authorization 头中提取 Bearer token，兼容重复头被逗号拼接的场景。"""
    if not authorization:
        return None
    for candidate in reversed(_BEARER_PATTERN.findall(authorization)):
        token = candidate.strip()
        if token:
            return token
    return None


def extract_session_token(cookie_value: str | None, authorization: str | None) -> str | None:
    """优先读取 Cookie，其次读取 Bearer 头。"""
    if cookie_value and cookie_value.strip():
        return cookie_value.strip()
    return _extract_bearer_token(authorization)
