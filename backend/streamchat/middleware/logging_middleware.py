"""
ASGI middleware logging API requests and responses.

Written as pure ASGI (not BaseHTTPMiddleware) so streamed responses pass
through untouched. Event-stream bodies are counted, not captured.
"""

import json
import logging
import time
from typing import Optional
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)

MAX_LOGGED_BODY = 5000


def _sanitize_body(data: bytes) -> str:
    """Decode a body for logging, masking credentials when it is JSON."""
    text = data.decode("utf-8", errors="ignore")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return truncate_large_data(text, max_length=MAX_LOGGED_BODY)
    return truncate_large_data(
        json.dumps(filter_sensitive_data(payload), ensure_ascii=False),
        max_length=MAX_LOGGED_BODY,
    )


def _extract_error_reason(response_text: str) -> Optional[str]:
    """Pull a short reason out of an error body."""
    try:
        payload = json.loads(response_text)
    except json.JSONDecodeError:
        return truncate_large_data(response_text, max_length=500) if response_text else None
    if isinstance(payload, dict):
        for key in ("detail", "message", "error"):
            if payload.get(key):
                return truncate_large_data(str(payload[key]), max_length=500)
    return truncate_large_data(json.dumps(payload, ensure_ascii=False), max_length=500)


class RequestLoggingMiddleware:
    """Logs method, path, status, duration and sanitized bodies of HTTP requests."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        """
        Args:
            app: The ASGI application
            exclude_paths: Paths logged without bodies (e.g. ["/health"])
        """
        self.app = app
        self.exclude_paths = exclude_paths or ["/health"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        start_time = time.time()
        request_id = id(scope)
        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "")
        client = scope.get("client")

        request_chunks = []
        response_chunks = []
        response_bytes = 0
        status_code = 0
        streaming = False

        async def logging_receive() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                request_chunks.append(message.get("body", b""))
            return message

        async def logging_send(message: Message) -> None:
            nonlocal status_code, streaming, response_bytes
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                headers = {
                    k.decode("latin-1").lower(): v.decode("latin-1")
                    for k, v in message.get("headers", [])
                }
                streaming = headers.get("content-type", "").startswith("text/event-stream")
            elif message["type"] == "http.response.body":
                body = message.get("body", b"")
                response_bytes += len(body)
                if not streaming:
                    response_chunks.append(body)
            await send(message)

        logger.info(
            f"Request started: {method} {path}",
            extra={"extra_fields": {
                "request_id": request_id,
                "method": method,
                "path": path,
                "client": client[0] if client else None,
            }}
        )

        try:
            await self.app(scope, logging_receive, logging_send)
        except Exception as e:
            logger.error(
                f"Request failed: {method} {path} - {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "request_id": request_id,
                    "duration_ms": (time.time() - start_time) * 1000,
                    "error": str(e),
                }}
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        request_body = b"".join(request_chunks)
        response_body = b"".join(response_chunks)
        request_text = _sanitize_body(request_body) if request_body else None
        response_text = _sanitize_body(response_body) if response_body else None
        error_reason = _extract_error_reason(response_text or "") if status_code >= 400 else None

        if status_code < 400:
            log_level = logging.INFO
        elif status_code < 500:
            log_level = logging.WARNING
        else:
            log_level = logging.ERROR

        message = f"Request completed: {method} {path} - {status_code} ({duration_ms:.2f}ms)"
        if streaming:
            message += f" | streamed {response_bytes} bytes"
        if error_reason:
            message += f" | error_reason={error_reason}"

        logger.log(
            log_level,
            message,
            extra={"extra_fields": {
                "request_id": request_id,
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "request_body": request_text,
                "response_body": response_text,
                "response_bytes": response_bytes,
                "error_reason": error_reason,
            }}
        )
