"""
Security Utilities.

Single shared-secret bearer authentication. The secret is resolved once
at startup: DEN_AUTH_TOKEN when set, otherwise a random token that lives
for the lifetime of the process.
"""

import hmac
import secrets

from den.backend.core.config import Settings
from den.backend.core.logging import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


def generate_token() -> str:
    """Generate a 32 hex character secret."""
    return secrets.token_hex(16)


def resolve_auth_token(settings: Settings) -> str:
    """
    Resolve the server secret.

    A configured token is trimmed; blank counts as unset. A generated
    token is logged once so it can be copied into client configuration.
    """
    configured = (settings.auth_token or "").strip()
    if configured:
        return configured

    token = generate_token()
    logger.warning(
        "DEN_AUTH_TOKEN not set, generated a token for this process",
        extra={"token": token},
    )
    return token


class AuthGate:
    """
    Checks request credentials against the server secret.

    Usage:
        gate = AuthGate(resolve_auth_token(get_settings()))
        gate.check_header(request.headers.get("authorization"))
        gate.check_token(websocket.query_params.get("token"))
    """

    def __init__(self, token: str) -> None:
        if not token:
            raise ValueError("Auth token must not be empty")
        self._token = token

    @property
    def token(self) -> str:
        return self._token

    def check_token(self, value: str | None) -> bool:
        """Compare a raw token in constant time."""
        if not value:
            return False
        return hmac.compare_digest(value.encode("utf-8"), self._token.encode("utf-8"))

    def check_header(self, value: str | None) -> bool:
        """Accept exactly `Bearer <token>`."""
        if not value or not value.startswith(BEARER_PREFIX):
            return False
        return self.check_token(value[len(BEARER_PREFIX):])
