"""JWT Bearer authentication middleware."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from addiscare.logging_config import bind_request_context
from addiscare.security import decode_access_token

logger = logging.getLogger(__name__)

ANONYMOUS = {"sub": "anonymous", "role": None, "name": None}


class AuthMiddleware(BaseHTTPMiddleware):
    """Validate the Bearer token and attach the caller to ``request.state.user``.

    Routes decide whether auth is required; an invalid token leaves an
    ``_auth_error`` marker for :func:`addiscare.dependencies.get_current_user`.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        auth_header = request.headers.get("authorization", "")

        if auth_header.startswith("Bearer "):
            request.state.user = self._validate_jwt(auth_header[7:])
        else:
            request.state.user = dict(ANONYMOUS)

        user = request.state.user
        if user["sub"] != "anonymous":
            bind_request_context(getattr(request.state, "trace_id", "unknown"), user["sub"], user["role"])
        return await call_next(request)

    @staticmethod
    def _validate_jwt(token: str) -> dict:
        try:
            claims = decode_access_token(token)
        except ValueError as exc:
            logger.debug("JWT rejected: %s", exc)
            return {**ANONYMOUS, "_auth_error": "invalid_token"}

        return {
            "sub": claims.get("sub", ""),
            "role": claims.get("role"),
            "name": claims.get("name"),
        }
