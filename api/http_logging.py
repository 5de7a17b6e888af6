from __future__ import annotations

import json
import logging
import os
import time
import uuid
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("api.http")


_SENSITIVE_KEYS = {
    "authorization",
    "cookie",
    "set-cookie",
    "x-run-secret",
    "run_secret",
    "x-api-key",
    "api_key",
    "apikey",
    "token",
    "secret",
    "openai_api_key",
    "supabase_service_role_key",
}


def _env_bool(name: str, default: bool = False) -> bool:
    v = (os.getenv(name) or "").strip().lower()
    if not v:
        return default
    return v in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_csv(name: str) -> FrozenSet[str]:
    return frozenset(p.strip() for p in (os.getenv(name) or "").split(",") if p.strip())


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: ("***" if str(k).lower() in _SENSITIVE_KEYS else _redact(v)) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact(v) for v in value]
    return value


def _decode_headers(headers: Optional[Iterable[Tuple[bytes, bytes]]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for k, v in headers or []:
        ks = k.decode("latin-1").lower()
        out[ks] = "***" if ks in _SENSITIVE_KEYS else v.decode("latin-1")
    return out


def _header(headers: Optional[Iterable[Tuple[bytes, bytes]]], name: bytes) -> str:
    for k, v in headers or []:
        if k.lower() == name:
            return v.decode("latin-1")
    return ""


def _parse_body(content_type: str, body: bytes) -> Any:
    ct = (content_type or "").lower()
    if not body:
        return ""
    if "application/json" in ct:
        text = body.decode("utf-8", errors="replace")
        try:
            return _redact(json.loads(text))
        except ValueError:
            # Truncated JSON is the common case for large batch responses.
            return text
    if ct.startswith("text/"):
        return body.decode("utf-8", errors="replace")
    return f"<{ct or 'binary'} {len(body)} bytes>"


class _BodyCapture:
    """Keeps the first `limit` bytes of a streamed body."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.buf = bytearray()
        self.truncated = False

    def feed(self, chunk: bytes) -> None:
        if not chunk or self.limit <= 0 or self.truncated:
            return
        remaining = self.limit - len(self.buf)
        if remaining > 0:
            self.buf.extend(chunk[:remaining])
        if len(chunk) > remaining:
            self.truncated = True


class HttpLoggingMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        *,
        log_headers: bool,
        max_body_bytes: int,
        skip_paths: FrozenSet[str] = frozenset(),
    ) -> None:
        self.app = app
        self.log_headers = log_headers
        self.max_body_bytes = max(0, max_body_bytes)
        self.skip_paths = skip_paths

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http" or str(scope.get("path") or "") in self.skip_paths:
            await self.app(scope, receive, send)
            return

        started_at = time.perf_counter()
        request_id = _header(scope.get("headers"), b"x-request-id") or uuid.uuid4().hex[:12]
        req_headers_list: List[Tuple[bytes, bytes]] = list(scope.get("headers") or [])
        req_body = _BodyCapture(self.max_body_bytes)
        res_body = _BodyCapture(self.max_body_bytes)
        res_headers_list: List[Tuple[bytes, bytes]] = []
        res_status: Optional[int] = None

        async def receive_wrapped() -> Message:
            message = await receive()
            if message.get("type") == "http.request":
                req_body.feed(message.get("body") or b"")
            return message

        async def send_wrapped(message: Message) -> None:
            nonlocal res_status, res_headers_list
            if message.get("type") == "http.response.start":
                res_status = int(message.get("status") or 0)
                res_headers_list = list(message.get("headers") or [])
            elif message.get("type") == "http.response.body":
                res_body.feed(message.get("body") or b"")
            await send(message)

        err: Optional[BaseException] = None
        try:
            await self.app(scope, receive_wrapped, send_wrapped)
        except BaseException as e:  # noqa: BLE001 - log then re-raise
            err = e
            raise
        finally:
            req_ct = _header(req_headers_list, b"content-type")
            res_ct = _header(res_headers_list, b"content-type")
            record: Dict[str, Any] = {
                "id": request_id,
                "method": str(scope.get("method") or "").upper(),
                "path": str(scope.get("path") or ""),
                "query": (scope.get("query_string") or b"").decode("latin-1", errors="ignore"),
                "status": res_status,
                "dur_ms": int((time.perf_counter() - started_at) * 1000),
                "request": {
                    "content_type": req_ct,
                    "headers": _decode_headers(req_headers_list) if self.log_headers else {},
                    "body": _parse_body(req_ct, bytes(req_body.buf)),
                    "body_truncated": req_body.truncated,
                },
                "response": {
                    "content_type": res_ct,
                    "headers": _decode_headers(res_headers_list) if self.log_headers else {},
                    "body": _parse_body(res_ct, bytes(res_body.buf)),
                    "body_truncated": res_body.truncated,
                },
            }
            if err is not None:
                record["error"] = {"type": type(err).__name__, "message": str(err)}
            # One line per request for grepping.
            logger.info(json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=str))


def install_http_logging(app: Any) -> None:
    """
    Enable request/response logging via env vars.

    - `CASE_HTTP_LOG=1` enables the middleware
    - `CASE_HTTP_LOG_HEADERS=1` logs request/response headers (`x-run-secret` is redacted)
    - `CASE_HTTP_LOG_BODY_MAX_BYTES=4096` caps body bytes captured per request/response
    - `CASE_HTTP_LOG_SKIP_PATHS=/health` comma-separated paths that are never logged
    """
    if not _env_bool("CASE_HTTP_LOG", default=False):
        return
    app.add_middleware(
        HttpLoggingMiddleware,
        log_headers=_env_bool("CASE_HTTP_LOG_HEADERS", default=False),
        max_body_bytes=_env_int("CASE_HTTP_LOG_BODY_MAX_BYTES", default=4096),
        skip_paths=_env_csv("CASE_HTTP_LOG_SKIP_PATHS") or frozenset({"/health"}),
    )
