"""OAuth2 refresh-token authentication for the Google Drive API."""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from drive_path.drive.models import DEFAULT_EXPIRES_IN, TokenGrant
from drive_path.drive.state import CredentialSession, DriveState

if TYPE_CHECKING:
    from drive_path.config import AppConfig

logger = logging.getLogger(__name__)


class DriveAuthError(Exception):
    """Raised when the refresh-token exchange fails."""


class TokenManager:
    """Hands out bearer tokens, refreshing them only when the cached one expired."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        token_url: str,
        state: DriveState | None = None,
        expiry_margin_seconds: int = 100,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialise the token manager.

        Args:
            client_id: OAuth2 client ID.
            client_secret: OAuth2 client secret.
            refresh_token: Long-lived refresh token exchanged for access tokens.
            token_url: OAuth2 token endpoint.
            state: Shared state holding the current credential session.
            expiry_margin_seconds: Subtracted from the advertised token lifetime
                so that a token never expires while a request is in flight.
            timeout: Transport timeout for the exchange call, in seconds.
            clock: Source of the current time in epoch seconds.
        """
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._token_url = token_url
        self._state = state if state is not None else DriveState()
        self._expiry_margin_seconds = expiry_margin_seconds
        self._timeout = timeout
        self._clock = clock

    @property
    def state(self) -> DriveState:
        return self._state

    def get_access_token(self) -> str:
        """Return a valid access token, exchanging the refresh token if needed.

        Returns:
            Access token string.

        Raises:
            DriveAuthError: If the exchange fails; no session is kept in that case.
        """
        session = self._state.session
        if session is not None and session.is_valid(self._clock()):
            return session.access_token

        self._state.session = None
        grant = self._exchange()
        now = self._clock()
        expires_at = grant.expires_at if grant.expires_at is not None else now + DEFAULT_EXPIRES_IN
        lifetime = max(expires_at - self._expiry_margin_seconds - now, 0)
        self._state.session = CredentialSession(
            access_token=grant.access_token,
            expires_at=now + lifetime,
        )
        logger.info("[get_access_token] access token refreshed; lifetime_seconds:%d", lifetime)
        return grant.access_token

    def _exchange(self) -> TokenGrant:
        """Refresh OAuth2 credentials against the token endpoint and validate the grant."""
        credentials = Credentials(
            token=None,
            refresh_token=self._refresh_token,
            token_uri=self._token_url,
            client_id=self._client_id,
            client_secret=self._client_secret,
        )
        transport = functools.partial(Request(), timeout=self._timeout)
        try:
            credentials.refresh(transport)
            return TokenGrant.from_credentials(credentials.token, credentials.expiry)
        except RefreshError as exc:
            logger.error("[_exchange] token endpoint rejected refresh; reason:%s", exc)
            raise DriveAuthError(f"Token refresh failed: {exc}") from exc
        except TransportError as exc:
            logger.error("[_exchange] token endpoint unreachable; reason:%s", exc)
            raise DriveAuthError(f"Token refresh failed: {exc}") from exc
        except ValueError as exc:
            logger.error("[_exchange] malformed token response; reason:%s", exc)
            raise DriveAuthError(f"Malformed token response: {exc}") from exc


def token_manager_from_config(config: AppConfig, state: DriveState | None = None) -> TokenManager:
    """Construct a TokenManager from application configuration.

    Args:
        config: Application configuration instance.
        state: Shared state; a fresh one is created when omitted.

    Returns:
        Configured TokenManager instance.
    """
    return TokenManager(
        client_id=config.client_id,
        client_secret=config.client_secret,
        refresh_token=config.refresh_token,
        token_url=config.token_url,
        state=state,
        expiry_margin_seconds=config.token_expiry_margin_seconds,
        timeout=config.request_timeout_seconds,
    )
