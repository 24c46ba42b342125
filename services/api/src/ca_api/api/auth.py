"""认证接口。

会话令牌只通过 `HttpOnly` Cookie 下发，不出现在 JSON 响应体中；
调用方也可以通过 `Authorization: Bearer <token>` 回传令牌。
"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from ca_api.core.config import get_settings
from ca_api.db.session import get_db
from ca_api.dependencies import get_current_session, get_session_token
from ca_api.schemas.auth import (
    MeData,
    RecoverData,
    RecoverRequest,
    SigninData,
    SigninRequest,
    SignoutData,
    SignupData,
    SignupRequest,
    SuggestData,
)
from ca_api.schemas.common import ErrorResponse, SuccessResponse
from ca_api.services import account_auth
from ca_api.services.sessions import SessionPrincipal
from ca_api.utils.response import success

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
    )


@router.get(
    "/suggest",
    summary="推荐 Emoji ID",
    description="返回一个当前未被占用的 Emoji ID，供注册表单预填，不做预留。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[SuggestData],
    responses={503: {"model": ErrorResponse}},
)
def suggest(request: Request, db: Session = Depends(get_db)):
    """推荐 Emoji ID。"""
    return success(request, {"emoji_id": account_auth.suggest_emoji_id(db)})


@router.post(
    "/signup",
    summary="注册账号",
    description="校验 iCal 地址后创建账号，返回 Emoji ID 与一次性恢复码，并通过 Cookie 下发会话。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[SignupData],
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
def signup(
    payload: SignupRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """注册账号。"""
    result = account_auth.signup(db, emoji_id=payload.emoji_id, ical_url=payload.ical_url)
    _set_session_cookie(response, result.session_token)
    return success(
        request,
        {
            "emoji_id": result.emoji_id,
            "recovery_codes": result.recovery_codes,
            "message": account_auth.RECOVERY_CODES_NOTICE,
        },
    )


@router.post(
    "/signin",
    summary="登录",
    description="使用 Emoji ID + iCal 地址登录。账号不存在与地址不匹配返回同一错误。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[SigninData],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
def signin(
    payload: SigninRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """登录并签发新会话，已有会话不受影响。"""
    result = account_auth.signin(db, emoji_id=payload.emoji_id, ical_url=payload.ical_url)
    _set_session_cookie(response, result.session_token)
    return success(request, {"emoji_id": result.emoji_id})


@router.post(
    "/recover",
    summary="恢复码登录",
    description="消费一个恢复码登录，可选同时更换 iCal 地址。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RecoverData],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
def recover(
    payload: RecoverRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """恢复码登录。"""
    result = account_auth.recover(
        db,
        emoji_id=payload.emoji_id,
        recovery_code=payload.recovery_code,
        new_ical_url=payload.new_ical_url,
    )
    _set_session_cookie(response, result.session_token)
    return success(
        request,
        {
            "emoji_id": result.emoji_id,
            "remaining_recovery_codes": result.remaining_recovery_codes,
            "warning": result.warning,
        },
    )


@router.post(
    "/signout",
    summary="登出",
    description="删除当前会话并清除 Cookie；无令牌或令牌无效时同样返回成功。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[SignoutData],
)
def signout(
    request: Request,
    response: Response,
    token: str | None = Depends(get_session_token),
    db: Session = Depends(get_db),
):
    """登出。"""
    account_auth.signout(db, token)
    response.delete_cookie(get_settings().session_cookie_name)
    return success(request, {"ok": True})


@router.get(
    "/me",
    summary="获取当前身份",
    description="返回当前会话绑定的 Emoji ID。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[MeData],
    responses={401: {"model": ErrorResponse}},
)
def me(request: Request, principal: SessionPrincipal = Depends(get_current_session)):
    """查询当前会话。"""
    return success(request, {"emoji_id": principal.emoji_id})
