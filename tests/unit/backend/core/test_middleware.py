"""
Unit Tests for Request Middleware.

Covers:
- Request ID generation and propagation
- Frontend extraction from the X-Frontend-ID header
- Response timing headers and structlog context binding
- The bearer-token gate in front of every route
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import httpx
import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from den.backend.core.middleware import (
    AuthGateMiddleware,
    RequestContextMiddleware,
    build_cors_headers,
)
from den.backend.core.security import AuthGate

TOKEN = "0123456789abcdef0123456789abcdef"
METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
HEADERS = ["Content-Type", "Authorization"]


class TestRequestContextMiddleware:
    """Tests for RequestContextMiddleware."""

    @pytest.fixture
    def middleware(self):
        return RequestContextMiddleware(MagicMock())

    @pytest.fixture
    def mock_request(self):
        request = MagicMock(spec=Request)
        request.headers = {}
        request.method = "GET"
        request.url = MagicMock()
        request.url.path = "/api/notes"
        request.client = MagicMock()
        request.client.host = "127.0.0.1"
        request.state = MagicMock()
        return request

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("header", "expected"),
        [("client", "client"), ("CLI", "cli"), ("custom-thing", "unknown"), (None, "unknown")],
    )
    async def test_frontend_extraction(self, middleware, mock_request, header, expected):
        """Recognised frontends are kept, case-insensitively; anything else is 'unknown'."""
        if header is not None:
            mock_request.headers = {"X-Frontend-ID": header}

        async def call_next(request):
            assert request.state.frontend == expected
            return Response(content="OK")

        with patch("den.backend.core.middleware.structlog.contextvars") as mock_ctx:
            await middleware.dispatch(mock_request, call_next)

        assert mock_ctx.bind_contextvars.call_args[1]["frontend"] == expected

    @pytest.mark.asyncio
    async def test_generates_request_id(self, middleware, mock_request):
        async def call_next(request):
            assert len(request.state.request_id) == 36
            return Response(content="OK")

        with patch("den.backend.core.middleware.structlog.contextvars"):
            response = await middleware.dispatch(mock_request, call_next)

        assert len(response.headers["X-Request-ID"]) == 36
        assert response.headers["X-Response-Time"].endswith("ms")

    @pytest.mark.asyncio
    async def test_uses_provided_request_id(self, middleware, mock_request):
        mock_request.headers = {"X-Request-ID": "custom-request-id-123"}

        async def call_next(request):
            return Response(content="OK")

        with patch("den.backend.core.middleware.structlog.contextvars"):
            response = await middleware.dispatch(mock_request, call_next)

        assert response.headers["X-Request-ID"] == "custom-request-id-123"

    @pytest.mark.asyncio
    async def test_start_time_is_naive_utc(self, middleware, mock_request):
        captured = {}

        async def call_next(request):
            captured["start"] = request.state.start_time
            return Response(content="OK")

        with patch("den.backend.core.middleware.structlog.contextvars"):
            await middleware.dispatch(mock_request, call_next)

        assert isinstance(captured["start"], datetime)
        assert captured["start"].tzinfo is None

    @pytest.mark.asyncio
    async def test_binds_and_clears_context(self, middleware, mock_request):
        async def call_next(request):
            return Response(content="OK")

        with patch("den.backend.core.middleware.structlog.contextvars") as mock_ctx:
            await middleware.dispatch(mock_request, call_next)

        call_kwargs = mock_ctx.bind_contextvars.call_args[1]
        assert call_kwargs["method"] == "GET"
        assert call_kwargs["path"] == "/api/notes"
        assert mock_ctx.clear_contextvars.call_count == 2

    @pytest.mark.asyncio
    async def test_reraises_and_clears_on_exception(self, middleware, mock_request):
        async def call_next(request):
            raise RuntimeError("Something went wrong")

        with patch("den.backend.core.middleware.structlog.contextvars") as mock_ctx:
            with pytest.raises(RuntimeError, match="Something went wrong"):
                await middleware.dispatch(mock_request, call_next)

        assert mock_ctx.clear_contextvars.call_count == 2

    @pytest.mark.asyncio
    async def test_handles_missing_client(self, middleware, mock_request):
        mock_request.client = None

        async def call_next(request):
            return Response(content="OK")

        with patch("den.backend.core.middleware.structlog.contextvars"):
            response = await middleware.dispatch(mock_request, call_next)

        assert response.status_code == 200


# =============================================================================
# AuthGateMiddleware
# =============================================================================


async def _ok(request: Request) -> JSONResponse:
    return JSONResponse({"ok": True})


def _gated_client(origins: list[str]) -> httpx.AsyncClient:
    app = Starlette(
        routes=[
            Route("/health", _ok),
            Route("/health/ready", _ok),
            Route("/api/notes", _ok, methods=["GET", "POST"]),
        ]
    )
    app.add_middleware(
        AuthGateMiddleware, gate=AuthGate(TOKEN), origins=origins, methods=METHODS, headers=HEADERS
    )
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def gated_client():
    return _gated_client(["*"])


class TestAuthGateMiddleware:
    """Every route except health requires the exact bearer header."""

    @pytest.mark.asyncio
    async def test_valid_token_passes(self, gated_client):
        async with gated_client as client:
            response = await client.get("/api/notes", headers={"Authorization": f"Bearer {TOKEN}"})

        assert response.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "header",
        [None, "", f"bearer {TOKEN}", f"Bearer  {TOKEN}", TOKEN, "Bearer wrong", f"Bearer {TOKEN}x"],
    )
    async def test_rejects_anything_but_exact_header(self, gated_client, header):
        headers = {"Authorization": header} if header is not None else {}
        async with gated_client as client:
            response = await client.get("/api/notes", headers=headers)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "code": "AUTH_UNAUTHORIZED"}
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/health", "/health/ready"])
    async def test_health_is_public(self, gated_client, path):
        async with gated_client as client:
            response = await client.get(path)

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_options_preflight_short_circuits(self, gated_client):
        async with gated_client as client:
            response = await client.options("/anything/at/all")

        assert response.status_code == 204
        assert "Authorization" in response.headers["access-control-allow-headers"]
        assert "DELETE" in response.headers["access-control-allow-methods"]

    @pytest.mark.asyncio
    async def test_preflight_echoes_a_listed_origin(self):
        async with _gated_client(["http://a", "http://b"]) as client:
            listed = await client.options("/api/notes", headers={"Origin": "http://b"})
            unlisted = await client.options("/api/notes", headers={"Origin": "http://evil"})

        assert listed.headers["access-control-allow-origin"] == "http://b"
        assert listed.headers["vary"] == "Origin"
        assert "access-control-allow-origin" not in unlisted.headers


class TestBuildCorsHeaders:
    def test_joins_methods_and_headers(self):
        headers = build_cors_headers(["*"], ["GET", "PUT"], ["Authorization"])

        assert headers == {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, PUT",
            "Access-Control-Allow-Headers": "Authorization",
        }

    def test_listed_origin_is_echoed_alone(self):
        headers = build_cors_headers(["http://a", "http://b"], ["GET"], ["Authorization"], "http://a")

        assert headers["Access-Control-Allow-Origin"] == "http://a"
        assert headers["Vary"] == "Origin"

    @pytest.mark.parametrize("request_origin", [None, "http://c"])
    def test_unlisted_origin_gets_no_allow_origin(self, request_origin):
        headers = build_cors_headers(["http://a", "http://b"], ["GET"], ["Authorization"], request_origin)

        assert "Access-Control-Allow-Origin" not in headers

    def test_empty_origins_means_any(self):
        assert build_cors_headers([], [], [])["Access-Control-Allow-Origin"] == "*"
