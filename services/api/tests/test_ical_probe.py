import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import httpx
import pytest
from fastapi import HTTPException

from ca_api.core.config import get_settings
from ca_api.services import ical_probe
from ca_api.services.ical_probe import ICAL_SNIFF_BYTES, ensure_ical_feed_reachable, looks_like_ical

CALENDAR_BODY = "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nEND:VCALENDAR\r\n"


@pytest.fixture
def probe_enabled(monkeypatch):
    monkeypatch.setenv("CA_ICAL_PROBE_ENABLED", "true")
    monkeypatch.setenv("CA_ICAL_PROBE_TIMEOUT_SECONDS", "0.5")
    get_settings.cache_clear()


def _use_transport(monkeypatch, handler, requested: list | None = None) -> None:
    def build_client(timeout_seconds):
        def record(request):
            if requested is not None:
                requested.append((str(request.url), timeout_seconds))
            return handler(request)

        return httpx.Client(transport=httpx.MockTransport(record), follow_redirects=True)

    monkeypatch.setattr(ical_probe, "_build_client", build_client)


def _reason(exc_info) -> str:
    return exc_info.value.detail["details"]["reason"]


def test_looks_like_ical():
    assert looks_like_ical("text/calendar; charset=utf-8", "")
    assert looks_like_ical("text/plain", "BEGIN:VCALENDAR\nVERSION:2.0")
    assert looks_like_ical("application/octet-stream", "\ufeffBEGIN:VCALENDAR")
    assert not looks_like_ical("text/html", "<html></html>")


def test_probe_accepts_calendar_content_type_and_rewrites_webcal(monkeypatch, probe_enabled):
    requested: list = []
    _use_transport(
        monkeypatch,
        lambda request: httpx.Response(200, headers={"content-type": "text/calendar"}, text=CALENDAR_BODY),
        requested,
    )

    ensure_ical_feed_reachable("webcal://example.com/feed.ics")

    assert requested == [("https://example.com/feed.ics", 0.5)]


def test_probe_accepts_calendar_body_with_generic_content_type(monkeypatch, probe_enabled):
    _use_transport(
        monkeypatch,
        lambda request: httpx.Response(200, headers={"content-type": "text/plain"}, text=CALENDAR_BODY),
    )
    ensure_ical_feed_reachable("https://example.com/feed.ics")


def test_probe_rejects_non_calendar_content(monkeypatch, probe_enabled):
    _use_transport(
        monkeypatch,
        lambda request: httpx.Response(200, headers={"content-type": "text/html"}, text="<html></html>"),
    )

    with pytest.raises(HTTPException) as exc:
        ensure_ical_feed_reachable("https://example.com/feed.ics")
    assert exc.value.status_code == 400
    assert _reason(exc) == "ical_feed_not_calendar"


def test_probe_rejects_error_status(monkeypatch, probe_enabled):
    _use_transport(monkeypatch, lambda request: httpx.Response(404, headers={"content-type": "text/calendar"}))

    with pytest.raises(HTTPException) as exc:
        ensure_ical_feed_reachable("https://example.com/feed.ics")
    assert _reason(exc) == "ical_feed_bad_status"


def test_probe_timeout_is_validation_failure(monkeypatch, probe_enabled):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    _use_transport(monkeypatch, handler)

    with pytest.raises(HTTPException) as exc:
        ensure_ical_feed_reachable("https://example.com/feed.ics")
    assert exc.value.status_code == 400
    assert exc.value.detail["code"] == "ICAL_FEED_UNREACHABLE"
    assert _reason(exc) == "ical_feed_timeout"


def test_probe_transport_error_is_validation_failure(monkeypatch, probe_enabled):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    _use_transport(monkeypatch, handler)

    with pytest.raises(HTTPException) as exc:
        ensure_ical_feed_reachable("https://example.com/feed.ics")
    assert _reason(exc) == "ical_feed_fetch_failed"


def test_probe_reads_at_most_sniff_window_of_endless_body(monkeypatch, probe_enabled):
    pulled: list[int] = []

    def endless_body():
        while True:
            pulled.append(1)
            yield b"x" * 1024

    _use_transport(
        monkeypatch,
        lambda request: httpx.Response(200, headers={"content-type": "text/plain"}, content=endless_body()),
    )

    with pytest.raises(HTTPException) as exc:
        ensure_ical_feed_reachable("https://example.com/feed.ics")
    assert _reason(exc) == "ical_feed_not_calendar"
    assert len(pulled) <= ICAL_SNIFF_BYTES // 1024 + 1


class _DripHandler(BaseHTTPRequestHandler):
    """声明长正文后每 0.1 秒只写 1 字节。"""

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", "100000")
        self.end_headers()
        stop_at = time.monotonic() + 5
        try:
            while time.monotonic() < stop_at:
                self.wfile.write(b"x")
                self.wfile.flush()
                time.sleep(0.1)
        except (BrokenPipeError, ConnectionResetError):
            return

    def log_message(self, format, *args):
        return


@pytest.fixture
def drip_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _DripHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/feed.ics"
    finally:
        server.shutdown()
        server.server_close()


def test_probe_total_duration_is_bounded_for_slow_server(monkeypatch, probe_enabled, drip_server):
    for name in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    started = time.monotonic()
    with pytest.raises(HTTPException) as exc:
        ensure_ical_feed_reachable(drip_server)
    elapsed = time.monotonic() - started

    assert _reason(exc) == "ical_feed_timeout"
    assert elapsed < 2.0


def test_probe_disabled_skips_network(monkeypatch):
    def unexpected_client(timeout_seconds):
        raise AssertionError("network must not be used")

    monkeypatch.setattr(ical_probe, "_build_client", unexpected_client)
    ensure_ical_feed_reachable("https://example.com/feed.ics")
