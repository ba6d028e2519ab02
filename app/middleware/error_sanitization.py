"""
Error Sanitization Middleware

Keeps stack traces and internal messages out of 5xx responses.
"""

from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.config import logger
from app.core.entitlements.gates import FeatureGateError


def _error_response(request: Request, status_code: int, detail: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "request_id": request_id},
    )


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Replaces 5xx bodies with a generic message outside debug mode.

    A broken feature gate table is reported as 503 since no entitlement
    can be answered until it is fixed and reloaded.
    """

    def __init__(self, app: ASGIApp, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
        except FeatureGateError as exc:
            logger.error("Feature gate table unavailable: %s", exc)
            if self.debug:
                raise
            return _error_response(request, 503, "Feature configuration unavailable")
        except Exception as exc:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception("Unhandled exception in request %s: %s", request_id, exc)
            if self.debug:
                raise
            return _error_response(request, 500, "Internal server error")

        if response.status_code >= 500 and not self.debug:
            return _error_response(request, response.status_code, "Internal server error")
        return response
