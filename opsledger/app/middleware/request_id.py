"""Request correlation id middleware."""

from __future__ import annotations

import logging
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Expose ``request.state.request_id`` and echo it in ``X-Request-ID``.

    A well-formed id sent by the caller is reused; otherwise a new one is
    generated.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = _accept_or_generate(request.headers.get(HEADER, ""))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[HEADER] = request_id
        if response.status_code >= 500:
            logger.error(
                "%s %s failed with %d [request_id=%s]",
                request.method, request.url.path, response.status_code, request_id,
            )
        return response


def _accept_or_generate(header: str) -> str:
    candidate = header.strip()
    if 0 < len(candidate) <= 64 and all(c.isalnum() or c in "-_" for c in candidate):
        return candidate
    return uuid.uuid4().hex
