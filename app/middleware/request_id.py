"""
Request ID Middleware

Tags every HTTP request with an ID so log lines and error bodies correlate.
"""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.security.constants import REQUEST_ID_HEADER
from app.core.security.utils import get_request_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Stores the request ID on `request.state.request_id` and echoes it back.

    A caller-supplied X-Request-ID is reused when it is well formed.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.request_id = get_request_id(request)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        return response
