"""
Request Middleware.

Request context tracking and the bearer-token gate applied to every
HTTP request before routing.
"""

import uuid
from datetime import datetime, timezone

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from den.backend.core.exception_handlers import error_response
from den.backend.core.exceptions import AuthenticationError
from den.backend.core.logging import VALID_SOURCES, get_logger
from den.backend.core.security import AuthGate

logger = get_logger(__name__)

PUBLIC_PATHS = frozenset({"/health", "/health/ready"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds request context to every request.

    Features:
    - Generates or propagates request ID (X-Request-ID header)
    - Extracts frontend identifier (X-Frontend-ID header)
    - Records request timing (X-Response-Time header)
    - Binds request context to structlog for automatic inclusion in logs

    Access in endpoints:
        request.state.request_id
        request.state.frontend
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request with context tracking."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        frontend = request.headers.get("X-Frontend-ID", "unknown").lower()
        if frontend not in VALID_SOURCES:
            frontend = "unknown"

        start_time = datetime.now(timezone.utc).replace(tzinfo=None)

        request.state.request_id = request_id
        request.state.frontend = frontend
        request.state.start_time = start_time

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            frontend=frontend,
            method=request.method,
            path=request.url.path,
        )

        logger.debug(
            "Request started",
            extra={"client_host": request.client.host if request.client else None},
        )

        try:
            response = await call_next(request)

            end_time = datetime.now(timezone.utc).replace(tzinfo=None)
            duration_ms = int((end_time - start_time).total_seconds() * 1000)

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms}ms"

            logger.debug(
                "Request completed",
                extra={"status_code": response.status_code, "duration_ms": duration_ms},
            )

            return response

        except Exception as exc:
            end_time = datetime.now(timezone.utc).replace(tzinfo=None)
            duration_ms = int((end_time - start_time).total_seconds() * 1000)

            logger.error(
                "Request failed with exception",
                extra={"duration_ms": duration_ms, "error_type": type(exc).__name__},
            )
            raise

        finally:
            structlog.contextvars.clear_contextvars()


class AuthGateMiddleware(BaseHTTPMiddleware):
    """
    Rejects unauthenticated HTTP requests before they reach a router.

    - OPTIONS on any path is answered directly with 204 and CORS headers.
    - /health and /health/ready are public.
    - Everything else needs `Authorization: Bearer <token>`; otherwise a
      401 `{"error": "Unauthorized"}` carrying CORS headers.

    WebSocket scopes pass through; the stream endpoint checks its own
    `token` query parameter.
    """

    def __init__(
        self,
        app: ASGIApp,
        gate: AuthGate,
        origins: list[str],
        methods: list[str],
        headers: list[str],
    ) -> None:
        super().__init__(app)
        self.gate = gate
        self.origins = origins
        self.methods = methods
        self.headers = headers

    def _cors_headers(self, request: Request) -> dict[str, str]:
        return build_cors_headers(
            self.origins, self.methods, self.headers, request.headers.get("origin")
        )

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=self._cors_headers(request))

        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        if not self.gate.check_header(request.headers.get("authorization")):
            logger.warning("Rejected unauthenticated request")
            exc = AuthenticationError()
            response = error_response(401, exc.message, exc.code)
            response.headers.update(self._cors_headers(request))
            return response

        return await call_next(request)


def build_cors_headers(
    origins: list[str],
    methods: list[str],
    headers: list[str],
    request_origin: str | None = None,
) -> dict[str, str]:
    """
    Render the CORS headers sent on preflight and rejected requests.

    `Access-Control-Allow-Origin` carries a single value: `*` when any
    origin is allowed, otherwise the request's own origin if it is listed.
    An unlisted origin gets no Allow-Origin header at all.
    """
    cors = {
        "Access-Control-Allow-Methods": ", ".join(methods),
        "Access-Control-Allow-Headers": ", ".join(headers),
    }
    if not origins or "*" in origins:
        cors["Access-Control-Allow-Origin"] = "*"
    elif request_origin in origins:
        cors["Access-Control-Allow-Origin"] = request_origin
        cors["Vary"] = "Origin"
    return cors
