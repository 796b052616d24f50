"""
Integration Test Fixtures.

Fixtures for integration tests - real application, real SQLite file.
These fixtures build on the root conftest.py fixtures.
"""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from den.backend.core.config import Settings
from den.backend.core.database import dispose_engine, init_database
from den.backend.main import create_app

TEST_TOKEN = "test-token-0123456789abcdef"


# =============================================================================
# Application Fixtures
# =============================================================================


@pytest.fixture
async def app(db_path: Path) -> AsyncGenerator[FastAPI, None]:
    """
    Application wired to a fresh database file.

    ASGITransport does not run the lifespan, so the schema is created here.
    """
    application = create_app(Settings(auth_token=TEST_TOKEN))
    await init_database()
    yield application
    await dispose_engine()


@pytest.fixture
async def client(app: FastAPI, auth_headers: dict[str, str]) -> AsyncGenerator[AsyncClient, None]:
    """
    Authenticated client for the HTTP API.

    Usage:
        async def test_list(client: AsyncClient):
            response = await client.get("/api/notes")
            assert response.status_code == 200
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=auth_headers,
    ) as test_client:
        yield test_client


@pytest.fixture
async def anon_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Client that sends no Authorization header."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client


@pytest.fixture
def live_client(db_path: Path) -> Generator[TestClient, None, None]:
    """
    Synchronous client running the full lifespan, for WebSocket tests.

    Everything, including the database engine, lives on the TestClient's
    own event loop.
    """
    application = create_app(Settings(auth_token=TEST_TOKEN))
    with TestClient(application) as test_client:
        yield test_client


# =============================================================================
# API Response Assertion Helpers
# =============================================================================


class ApiAssertions:
    """Helper class for API response assertions."""

    @staticmethod
    def assert_success(response: Any, expected_status: int = 200) -> Any:
        """
        Assert API response is successful.

        Returns:
            Response JSON data
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        return response.json()

    @staticmethod
    def assert_error(
        response: Any,
        expected_status: int,
        expected_code: str | None = None,
        expected_message: str | None = None,
    ) -> dict[str, Any]:
        """
        Assert API response is an error body `{"error": ..., "code": ...}`.

        Returns:
            Response JSON data
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        data = response.json()
        assert isinstance(data.get("error"), str), f"Missing error message: {data}"

        if expected_code:
            assert data.get("code") == expected_code, (
                f"Expected error code {expected_code}, got {data.get('code')}"
            )
        if expected_message:
            assert data["error"] == expected_message

        return data


@pytest.fixture
def api() -> ApiAssertions:
    """Provide API assertion helpers."""
    return ApiAssertions()
