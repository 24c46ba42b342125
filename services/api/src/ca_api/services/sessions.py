"""会话存储服务。

明文令牌只在签发时返回给调用方一次，数据库仅保存其 SHA-256 摘要与过期时间。
会话有效当且仅当 `expires_at` 严格晚于校验时刻；不做滑动续期，
提前失效的唯一方式是删除。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ca_api.core.config import get_settings
from ca_api.core.security import generate_session_token, hash_session_token
from ca_api.models.auth import Account, AuthSession


@dataclass(frozen=True)
class SessionPrincipal:
    """已认证会话绑定的账号。"""

    account_id: UUID
    emoji_id: str


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def issue_session(db: Session, account_id: UUID, *, now: datetime | None = None) -> str:
    """写入会话记录并返回明文令牌，由调用方负责提交事务。"""
    settings = get_settings()
    issued_at = now or _utc_now()
    token = generate_session_token(settings.session_token_bytes)
    db.add(
        AuthSession(
            account_id=account_id,
            token_hash=hash_session_token(token),
            expires_at=issued_at + timedelta(seconds=settings.session_ttl_seconds),
        )
    )
    db.flush()
    return token


def validate_session(db: Session, token: str | None, *, now: datetime | None = None) -> SessionPrincipal | None:
    """校验令牌，不存在与已过期统一返回 None。"""
    if not token:
        return None
    row = db.execute(
        select(AuthSession.account_id, Account.emoji_id)
        .join(Account, Account.id == AuthSession.account_id)
        .where(AuthSession.token_hash == hash_session_token(token))
        .where(AuthSession.expires_at > (now or _utc_now()))
    ).first()
    if row is None:
        return None
    return SessionPrincipal(account_id=row.account_id, emoji_id=row.emoji_id)


def revoke_session(db: Session, token: str | None) -> None:
    """按摘要删除会话，目标不存在时静默成功。"""
    if not token:
        return
    db.execute(
        delete(AuthSession)
        .where(AuthSession.token_hash == hash_session_token(token))
        .execution_options(synchronize_session=False)
    )


def purge_expired_sessions(db: Session, *, now: datetime | None = None) -> int:
    """批量删除已过期会话，返回删除条数，可重复执行。"""
    result = db.execute(
        delete(AuthSession)
        .where(AuthSession.expires_at <= (now or _utc_now()))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
