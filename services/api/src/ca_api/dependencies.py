"""请求上下文依赖。

职责:
1. 从 Cookie 或 Bearer 头中读取会话令牌。
2. 校验会话并返回绑定的账号，供受保护路由统一使用。
"""

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from ca_api.core.config import get_settings
from ca_api.core.security import UNAUTHORIZED, extract_session_token
from ca_api.db.session import get_db
from ca_api.services.sessions import SessionPrincipal, validate_session


def get_session_token(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> str | None:
    """读取调用方回传的会话令牌，缺失时返回 None。"""
    settings = get_settings()
    return extract_session_token(request.cookies.get(settings.session_cookie_name), authorization)


def get_current_session(
    token: str | None = Depends(get_session_token),
    db: Session = Depends(get_db),
) -> SessionPrincipal:
    """要求有效会话；未登录与已过期不做区分。"""
    principal = validate_session(db, token)
    if principal is None:
        raise UNAUTHORIZED
    return principal
