"""应用异常处理注册。"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ca_api.utils.response import DEFAULT_ERROR_MESSAGE, error_payload

logger = logging.getLogger("ca_api")

_DEFAULT_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_409_CONFLICT: "CONFLICT",
    status.HTTP_422_UNPROCESSABLE_CONTENT: "VALIDATION_ERROR",
    status.HTTP_503_SERVICE_UNAVAILABLE: "SERVICE_UNAVAILABLE",
}

_DEFAULT_MESSAGES = {
    status.HTTP_400_BAD_REQUEST: "Invalid request.",
    status.HTTP_401_UNAUTHORIZED: "Not authenticated.",
    status.HTTP_404_NOT_FOUND: "Not found.",
    status.HTTP_409_CONFLICT: "Request conflicts with current state.",
    status.HTTP_422_UNPROCESSABLE_CONTENT: "Request validation failed.",
    status.HTTP_503_SERVICE_UNAVAILABLE: "Service temporarily unavailable.",
}

_DEFAULT_SUGGESTIONS = {
    status.HTTP_401_UNAUTHORIZED: "Sign in again.",
    status.HTTP_422_UNPROCESSABLE_CONTENT: "Fix the listed fields and retry.",
    status.HTTP_503_SERVICE_UNAVAILABLE: "Please try again.",
}


def _default_http_error_code(status_code: int) -> str:
    return _DEFAULT_CODES.get(status_code, "HTTP_ERROR")


def _default_http_message(status_code: int) -> str:
    return _DEFAULT_MESSAGES.get(status_code, "Request failed.")


def _default_http_suggestion(status_code: int) -> str:
    return _DEFAULT_SUGGESTIONS.get(status_code, "Please try again later.")


def _normalize_raw_detail_message(raw: str, status_code: int) -> str:
    if raw.strip().lower() == "unauthorized":
        return _default_http_message(status.HTTP_401_UNAUTHORIZED)
    return raw


def _parse_http_detail(detail: object, status_code: int) -> tuple[str, str, dict[str, object]]:
    code = _default_http_error_code(status_code)
    message = _default_http_message(status_code)
    details: dict[str, object] = {
        "status_code": status_code,
        "reason": code.lower(),
        "suggestion": _default_http_suggestion(status_code),
    }

    if isinstance(detail, dict):
        code = str(detail.get("code") or code)
        message = str(detail.get("message") or detail.get("detail") or message)
        raw_details = detail.get("details")
        if isinstance(raw_details, dict):
            details.update(raw_details)
        elif raw_details is not None:
            details["details"] = raw_details

        for key, value in detail.items():
            if key in {"code", "message", "details"}:
                continue
            details[key] = value
        return code, message, details

    if isinstance(detail, str):
        return code, _normalize_raw_detail_message(detail, status_code), details

    if detail is not None:
        details["detail"] = detail
    return code, message, details


async def http_exception_handler(request: Request, exc: HTTPException):
    """将协议异常统一包装为标准错误结构。"""
    code, message, details = _parse_http_detail(exc.detail, exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(request, code=code, message=message, details=details),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """统一处理请求参数校验错误。"""
    normalized_errors = [
        {
            "field": ".".join(str(item) for item in err.get("loc", []) if item != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_payload(
            request,
            code="VALIDATION_ERROR",
            message=_default_http_message(status.HTTP_422_UNPROCESSABLE_CONTENT),
            details={
                "status_code": status.HTTP_422_UNPROCESSABLE_CONTENT,
                "reason": "validation_error",
                "suggestion": _default_http_suggestion(status.HTTP_422_UNPROCESSABLE_CONTENT),
                "errors": normalized_errors,
            },
        ),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    """处理未捕获异常（含数据库写入失败），避免内部细节泄露。"""
    logger.exception("unhandled error path=%s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(
            request,
            code="INTERNAL_ERROR",
            message=DEFAULT_ERROR_MESSAGE,
            details={
                "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "reason": "unexpected_exception",
                "suggestion": "Please try again later and include the request_id if the problem persists.",
            },
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """集中注册异常处理器。"""
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
