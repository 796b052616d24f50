"""
HTTP Client for the Den API.

Async client used by every front-end. All requests carry the bearer
token and `X-Frontend-ID: client` for log routing.
"""

from typing import Any

import httpx

from den.backend.core.logging import get_logger, log_with_source
from den.client.exceptions import ApiError, NetworkFailure
from den.client.models import Note, NoteList

logger = get_logger(__name__)


class DenAPIClient:
    """
    HTTP client for the notes API.

    Features:
    - Bearer authentication on every request
    - Transport failures raised as NetworkFailure
    - Non-2xx responses raised as ApiError with the server's message

    Usage:
        client = DenAPIClient("http://localhost:7745", token)
        page = await client.list_notes(search="groceries")
        note = await client.create_note("# Groceries\\nmilk")
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        frontend: str = "client",
    ) -> None:
        """
        Initialize the API client.

        Args:
            base_url: Server base URL, e.g. http://localhost:7745
            token: Shared bearer secret
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass an ASGI transport)
            frontend: Value sent in X-Frontend-ID
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.frontend = frontend
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"X-Frontend-ID": self.frontend}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Make a request and return the decoded JSON body.

        Raises:
            NetworkFailure: On connection or transport errors
            ApiError: On a non-2xx response
        """
        client = await self._get_client()

        log_with_source(logger, "client", "debug", "API request", method=method, path=path)

        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log_with_source(logger, "client", "warning", "API request failed",
                            method=method, path=path, error=str(e))
            raise NetworkFailure(str(e) or type(e).__name__) from e

        log_with_source(logger, "client", "debug", "API response",
                        method=method, path=path, status_code=response.status_code)

        if response.is_error:
            raise ApiError(response.status_code, _error_message(response))

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(response.status_code, "Response was not JSON") from e

    async def health(self) -> dict[str, Any]:
        return await self.request("GET", "/health")

    async def ready(self) -> dict[str, Any]:
        return await self.request("GET", "/health/ready")

    async def list_notes(
        self,
        limit: int = 200,
        offset: int = 0,
        pinned: bool | None = None,
        search: str | None = None,
    ) -> NoteList:
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if pinned is not None:
            params["pinned"] = "true" if pinned else "false"
        if search:
            params["search"] = search
        return NoteList.model_validate(await self.request("GET", "/api/notes", params=params))

    async def get_note(self, note_id: str) -> Note:
        return Note.model_validate(await self.request("GET", f"/api/notes/{note_id}"))

    async def create_note(
        self,
        content: str,
        title: str | None = None,
        pinned: bool | None = None,
        tags: list[str] | None = None,
    ) -> Note:
        body: dict[str, Any] = {"content": content}
        if title is not None:
            body["title"] = title
        if pinned is not None:
            body["pinned"] = pinned
        if tags is not None:
            body["tags"] = tags
        return Note.model_validate(await self.request("POST", "/api/notes", json=body))

    async def update_note(self, note_id: str, **fields: Any) -> Note:
        """Send a partial update. Only the given fields change."""
        return Note.model_validate(await self.request("PUT", f"/api/notes/{note_id}", json=fields))

    async def delete_note(self, note_id: str) -> None:
        await self.request("DELETE", f"/api/notes/{note_id}")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return response.reason_phrase
