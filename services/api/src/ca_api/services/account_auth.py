"""账号认证编排服务。

串联 Emoji ID、凭据哈希、恢复码与会话存储，负责各操作的校验顺序与失败时对外暴露的信息：

1. 廉价的格式校验总在查库之前。
2. 账号不存在与凭据不匹配统一返回“invalid credentials”，并在账号不存在的分支上
   执行等量的哈希派生，避免通过响应耗时枚举账号。
3. 多行写入（账号 + 恢复码 + 会话、恢复码消费 + 凭据轮换 + 会话）各自在同一事务内提交，
   任一步失败整体回滚。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ca_api.core.config import get_settings
from ca_api.models.auth import Account
from ca_api.services.credentials import HashedCredential, burn_hash_time, hash_secret, is_plausible_ical_url, verify_secret
from ca_api.services.emoji_id import emoji_id_exhausted, generate_unique_emoji_id, is_emoji_id_taken, is_valid_emoji_id
from ca_api.services.ical_probe import ensure_ical_feed_reachable
from ca_api.services.recovery import (
    consume_recovery_code,
    generate_recovery_codes,
    remaining_recovery_codes,
    store_recovery_codes,
)
from ca_api.services.sessions import issue_session, revoke_session

logger = logging.getLogger("ca_api.auth")

RECOVERY_CODES_NOTICE = "Store these recovery codes somewhere safe. They cannot be retrieved again."
RECOVERY_CODES_EXHAUSTED_WARNING = "You have used all your recovery codes. Please contact support."


@dataclass
class SignupResult:
    account_id: UUID
    emoji_id: str
    recovery_codes: list[str]
    session_token: str


@dataclass
class SigninResult:
    account_id: UUID
    emoji_id: str
    session_token: str


@dataclass
class RecoverResult:
    account_id: UUID
    emoji_id: str
    remaining_recovery_codes: int
    warning: str | None
    session_token: str


def _invalid_credentials() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "code": "INVALID_CREDENTIALS",
            "message": "Invalid credentials.",
            "details": {
                "reason": "invalid_credentials",
                "suggestion": "Check your Emoji ID and iCal URL or recovery code.",
            },
        },
    )


def _invalid_emoji_id() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "code": "INVALID_EMOJI_ID",
            "message": "Invalid Emoji ID format.",
            "details": {
                "reason": "invalid_emoji_id",
                "suggestion": "An Emoji ID is exactly 4 emoji from the supported set.",
            },
        },
    )


def _invalid_ical_url() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "code": "INVALID_ICAL_URL",
            "message": "Invalid iCal URL.",
            "details": {
                "reason": "invalid_ical_url",
                "suggestion": "Use an https:// or webcal:// calendar feed URL.",
            },
        },
    )


def _emoji_id_taken() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "code": "EMOJI_ID_TAKEN",
            "message": "Emoji ID already taken.",
            "details": {
                "reason": "emoji_id_taken",
                "suggestion": "Pick a different Emoji ID or let the server suggest one.",
            },
        },
    )


def _find_account(db: Session, emoji_id: str) -> Account | None:
    return db.execute(select(Account).where(Account.emoji_id == emoji_id)).scalar_one_or_none()


def suggest_emoji_id(db: Session) -> str:
    """返回一个当前未被占用的 Emoji ID，不做预留。"""
    return generate_unique_emoji_id(db)


def signup(db: Session, *, emoji_id: str | None, ical_url: str) -> SignupResult:
    """注册账号并签发恢复码与首个会话。"""
    if not is_plausible_ical_url(ical_url):
        raise _invalid_ical_url()
    ensure_ical_feed_reachable(ical_url)

    requested = emoji_id is not None and emoji_id != ""
    if requested:
        if not is_valid_emoji_id(emoji_id):
            raise _invalid_emoji_id()
        if is_emoji_id_taken(db, emoji_id):
            raise _emoji_id_taken()
        chosen = emoji_id
    else:
        chosen = generate_unique_emoji_id(db)

    credential = hash_secret(ical_url)
    codes = generate_recovery_codes()

    try:
        account = Account(emoji_id=chosen, credential_hash=credential.hash, credential_salt=credential.salt)
        db.add(account)
        db.flush()
        store_recovery_codes(db, account.id, codes.hashed)
        token = issue_session(db, account.id)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        # 并发注册抢占了同一 Emoji ID。
        logger.info("signup lost emoji id race requested=%s", requested)
        raise (_emoji_id_taken() if requested else emoji_id_exhausted()) from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("account created emoji_id=%s", chosen)
    return SignupResult(
        account_id=account.id,
        emoji_id=chosen,
        recovery_codes=codes.plain,
        session_token=token,
    )


def signin(db: Session, *, emoji_id: str, ical_url: str) -> SigninResult:
    """使用 Emoji ID + iCal 地址登录，会话可叠加，旧会话保持有效。"""
    if not is_valid_emoji_id(emoji_id):
        raise _invalid_emoji_id()

    account = _find_account(db, emoji_id)
    if account is None:
        burn_hash_time(ical_url)
        logger.info("signin failed emoji_id=%s", emoji_id)
        raise _invalid_credentials()

    stored = HashedCredential(hash=account.credential_hash, salt=account.credential_salt)
    if not verify_secret(ical_url, stored):
        logger.info("signin failed emoji_id=%s", emoji_id)
        raise _invalid_credentials()

    try:
        token = issue_session(db, account.id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return SigninResult(account_id=account.id, emoji_id=account.emoji_id, session_token=token)


def recover(
    db: Session,
    *,
    emoji_id: str,
    recovery_code: str,
    new_ical_url: str | None = None,
) -> RecoverResult:
    """消费一个恢复码登录，可同时轮换 iCal 地址。

    新地址的格式在消费恢复码之前校验，格式错误不会白白消耗恢复码；
    恢复码消费、凭据轮换与新会话在同一事务内提交。
    """
    if not is_valid_emoji_id(emoji_id):
        raise _invalid_emoji_id()
    rotate = new_ical_url is not None and new_ical_url != ""
    if rotate and not is_plausible_ical_url(new_ical_url):
        raise _invalid_ical_url()

    account = _find_account(db, emoji_id)
    if account is None:
        # 与真实账号固定次数的恢复码派生耗时对齐。
        for _ in range(get_settings().recovery_code_count):
            burn_hash_time(recovery_code)
        logger.info("recovery failed emoji_id=%s", emoji_id)
        raise _invalid_credentials()

    try:
        if not consume_recovery_code(db, account.id, recovery_code):
            db.rollback()
            logger.info("recovery failed emoji_id=%s", emoji_id)
            raise _invalid_credentials()

        if rotate:
            credential = hash_secret(new_ical_url)
            account.credential_hash = credential.hash
            account.credential_salt = credential.salt

        remaining = remaining_recovery_codes(db, account.id)
        token = issue_session(db, account.id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("recovery code consumed emoji_id=%s remaining=%s rotated=%s", emoji_id, remaining, rotate)
    return RecoverResult(
        account_id=account.id,
        emoji_id=emoji_id,
        remaining_recovery_codes=remaining,
        warning=RECOVERY_CODES_EXHAUSTED_WARNING if remaining == 0 else None,
        session_token=token,
    )


def signout(db: Session, token: str | None) -> None:
    """撤销当前会话，无令牌或令牌无效时同样成功。"""
    try:
        revoke_session(db, token)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
