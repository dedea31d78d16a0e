"""
Failure taxonomy shared by every endpoint.

Upstream clients (the Gemini REST call, SendGrid, the render endpoint) fail
with very different shapes: requests exceptions carrying a Response, plain
dicts decoded from an error body, exceptions chained with ``raise ... from``.
``parse_upstream_error`` digs through all of them and never raises.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import requests


class ErrorCode(str, Enum):
    BAD_REQUEST      = "BAD_REQUEST"
    RATE_LIMIT       = "RATE_LIMIT"
    AUTH_ERROR       = "AUTH_ERROR"
    SERVER_ERROR     = "SERVER_ERROR"
    RENDER_FAILURE   = "RENDER_FAILURE"
    DELIVERY_FAILURE = "DELIVERY_FAILURE"


class GenerationError(Exception):
    """The model answered with nothing at all."""


class RenderError(Exception):
    code = ErrorCode.RENDER_FAILURE


class DeliveryError(Exception):
    code = ErrorCode.DELIVERY_FAILURE


@dataclass(frozen=True)
class UpstreamError:
    status:      Optional[int]
    code:        Optional[str]
    message:     str
    retry_after: Optional[str]
    details:     Any = None

    @property
    def error_code(self) -> ErrorCode:
        return classify_status(self.status)

    @property
    def http_status(self) -> int:
        if self.error_code is ErrorCode.AUTH_ERROR:
            return self.status
        return {
            ErrorCode.RATE_LIMIT:  429,
            ErrorCode.BAD_REQUEST: 400,
        }.get(self.error_code, 500)


def _get(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    if key == "cause":
        return _first(getattr(obj, "cause", None), getattr(obj, "__cause__", None))
    return getattr(obj, key, None)


def _dig(obj: Any, *path: str) -> Any:
    for key in path:
        obj = _get(obj, key)
        if obj is None:
            return None
    return obj


def _first(*values: Any) -> Any:
    return next((v for v in values if v is not None), None)


def _status_of(obj: Any) -> Any:
    return _first(_get(obj, "status"), _get(obj, "status_code"))


def _response_body(err: Any) -> Any:
    response = _get(err, "response")
    body = _get(response, "data")
    if body is None and callable(getattr(response, "json", None)):
        try:
            body = response.json()
        except ValueError:
            body = None
    return body if isinstance(body, dict) else None


def _header(headers: Any, name: str) -> Optional[str]:
    if headers is None:
        return None
    try:
        return headers.get(name) or headers.get(name.title())
    except AttributeError:
        return None


def extract_status(err: Any) -> Optional[int]:
    status = _first(
        _status_of(err),
        _status_of(_get(err, "response")),
        _status_of(_get(err, "cause")),
        _dig(err, "error", "code"),
    )
    if isinstance(status, bool) or not isinstance(status, int):
        return None
    return status


def _exception_text(err: Any) -> Optional[str]:
    # requests messages embed the request URL
    if not isinstance(err, BaseException) or isinstance(err, requests.RequestException):
        return None
    return str(err) or None


def parse_upstream_error(err: Any) -> UpstreamError:
    body = _response_body(err)
    message = _first(
        _get(err, "message") if not isinstance(err, BaseException) else None,
        _dig(body, "error", "message"),
        _dig(err, "error", "message"),
        _exception_text(err),
        "Gemini request failed",
    )
    code = _first(
        _dig(err, "error", "status"),
        _dig(body, "error", "status"),
        _get(err, "code") if isinstance(_get(err, "code"), str) else None,
    )
    retry_after = _first(
        _header(_dig(err, "response", "headers"), "retry-after"),
        _header(_get(err, "headers"), "retry-after"),
    )
    details = _first(_get(err, "error"), body, _get(err, "cause"))
    return UpstreamError(
        status=extract_status(err),
        code=code,
        message=str(message),
        retry_after=retry_after,
        details=details,
    )


def classify_status(status: Optional[int]) -> ErrorCode:
    if status == 429:
        return ErrorCode.RATE_LIMIT
    if status == 400:
        return ErrorCode.BAD_REQUEST
    if status in (401, 403):
        return ErrorCode.AUTH_ERROR
    return ErrorCode.SERVER_ERROR


def classify_error(err: Any) -> ErrorCode:
    return parse_upstream_error(err).error_code
