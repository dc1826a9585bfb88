"""
Uniform JSON envelope returned by every endpoint:

    {"success": bool, "data": ..., "message": ..., "error": ...}

Keys whose value is None are left out.
"""

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _envelope(status_code: int, **body) -> JSONResponse:
    content = {k: v for k, v in body.items() if v is not None}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def success(data: Any = None, message: Optional[str] = None) -> JSONResponse:
    return _envelope(200, success=True, data=data, message=message)


def error(message: str, status_code: int = 400) -> JSONResponse:
    return _envelope(status_code, success=False, error=message)


def server_error(message: str) -> JSONResponse:
    return _envelope(500, success=False, error=message)


def unauthorized(message: str = "Authentication required") -> JSONResponse:
    return _envelope(401, success=False, error=message)


def batch_success(outcome, verb: str) -> JSONResponse:
    """Envelope for a batch write: counts and skipped items in data."""
    return success(outcome.as_data(), f"{outcome.count} item(s) {verb}")
