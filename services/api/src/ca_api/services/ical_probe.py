"""iCal 订阅地址可达性探测。

只在注册时调用，用于尽早提示用户地址不可公开访问。
这不是安全边界：任何网络错误、超时或非 2xx 响应都按参数校验失败处理。

整次拉取受 `ical_probe_timeout_seconds` 总时长约束（而不只是单次读写超时），
正文以流式读取，最多读取 `ICAL_SNIFF_BYTES` 字节用于内容嗅探。
"""

from __future__ import annotations

import logging
import time

import httpx
from fastapi import HTTPException, status

from ca_api.core.config import get_settings

logger = logging.getLogger("ca_api.auth")

ICAL_BODY_PREFIX = "BEGIN:VCALENDAR"
ICAL_SNIFF_BYTES = 64 * 1024


def _feed_unreachable(reason: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "code": "ICAL_FEED_UNREACHABLE",
            "message": "Could not fetch iCal URL. Is it publicly accessible?",
            "details": {
                "reason": reason,
                "suggestion": "Check that the iCal feed URL is public and returns calendar data.",
            },
        },
    )


def _not_calendar() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "code": "ICAL_FEED_UNREACHABLE",
            "message": "URL does not appear to be an iCal feed.",
            "details": {
                "reason": "ical_feed_not_calendar",
                "suggestion": "Use the private iCal (.ics) export URL from your calendar provider.",
            },
        },
    )


def _fetch_url(url: str) -> str:
    """webcal 协议按 https 拉取。"""
    if url.lower().startswith("webcal://"):
        return "https://" + url[len("webcal://"):]
    return url


def _build_client(timeout_seconds: float) -> httpx.Client:
    return httpx.Client(timeout=httpx.Timeout(timeout_seconds), follow_redirects=True)


def looks_like_ical(content_type: str, body: str) -> bool:
    """响应头或正文任一命中即视为 iCal 内容。"""
    return "calendar" in content_type.lower() or body.lstrip("\ufeff").lstrip().startswith(ICAL_BODY_PREFIX)


def _read_head(response: httpx.Response, deadline: float) -> str:
    """读取正文开头用于嗅探，超过总时限即中止。"""
    head = bytearray()
    for chunk in response.iter_bytes():
        if time.monotonic() > deadline:
            raise _feed_unreachable("ical_feed_timeout")
        head.extend(chunk)
        if len(head) >= ICAL_SNIFF_BYTES:
            break
    return bytes(head[:ICAL_SNIFF_BYTES]).decode("utf-8", errors="ignore")


def ensure_ical_feed_reachable(url: str) -> None:
    """拉取地址并嗅探内容类型，失败时抛出 400。"""
    settings = get_settings()
    if not settings.ical_probe_enabled:
        return

    timeout_seconds = settings.ical_probe_timeout_seconds
    deadline = time.monotonic() + timeout_seconds
    try:
        with _build_client(timeout_seconds) as client, client.stream("GET", _fetch_url(url)) as response:
            if not response.is_success:
                raise _feed_unreachable("ical_feed_bad_status")
            content_type = response.headers.get("content-type", "")
            if looks_like_ical(content_type, ""):
                return
            body = _read_head(response, deadline)
    except httpx.TimeoutException as exc:
        logger.info("ical probe timed out")
        raise _feed_unreachable("ical_feed_timeout") from exc
    except httpx.HTTPError as exc:
        logger.info("ical probe transport error type=%s", type(exc).__name__)
        raise _feed_unreachable("ical_feed_fetch_failed") from exc

    if not looks_like_ical(content_type, body):
        raise _not_calendar()
