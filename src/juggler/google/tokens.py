"""Access token lifecycle.

``TokenManager`` holds the long-lived refresh token and hands out short-lived
access tokens, refreshing only when the cached one is missing or about to
expire.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import httpx

from juggler.clock import Clock, system_clock
from juggler.config import (
    DEFAULT_TOKEN_EXPIRY_SECS,
    GOOGLE_OAUTH_TOKEN_URL,
    TOKEN_EXPIRY_MARGIN_SECS,
)
from juggler.google.exceptions import TokenRefreshError
from juggler.google.oauth import describe_token_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessToken:
    """A short-lived bearer token."""

    token: str = field(repr=False)
    issued_at: datetime
    expires_in: int = DEFAULT_TOKEN_EXPIRY_SECS
    token_type: str = "Bearer"

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.expires_in)

    def is_expired(self, now: datetime, margin: timedelta = timedelta(0)) -> bool:
        """Check whether the token is expired, or will be within ``margin``."""
        return now >= self.expires_at - margin


class TokenManager:
    """Refresh-token backed access token provider.

    Example:
        >>> manager = TokenManager(client_id, refresh_token, client_secret=secret)
        >>> token = manager.get_access_token()  # refreshes on first use
        >>> token = manager.get_access_token()  # cached until near expiry
    """

    EXPIRY_MARGIN = timedelta(seconds=TOKEN_EXPIRY_MARGIN_SECS)

    def __init__(
        self,
        client_id: str,
        refresh_token: str,
        *,
        client_secret: str | None = None,
        token_url: str = GOOGLE_OAUTH_TOKEN_URL,
        clock: Clock | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the manager.

        Args:
            client_id: OAuth client ID.
            refresh_token: Long-lived refresh token from ``juggler login``.
            client_secret: Desktop client secret; sent when configured.
            token_url: Token endpoint.
            clock: Time source for expiry checks.
            http_client: HTTP client; a private one is created if omitted.
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.clock = clock or system_clock()
        self._refresh_token = refresh_token
        self._client = http_client or httpx.Client(timeout=30.0)
        self._owns_client = http_client is None
        self._cached: AccessToken | None = None
        self.refresh_count = 0

    @property
    def cached_token(self) -> AccessToken | None:
        return self._cached

    def get_token(self) -> AccessToken:
        """Return a valid access token, refreshing it if needed.

        Raises:
            TokenRefreshError: If a refresh was needed and failed.
        """
        cached = self._cached
        if cached is not None and not cached.is_expired(self.clock.now(), self.EXPIRY_MARGIN):
            return cached
        return self.refresh()

    def get_access_token(self) -> str:
        """Return a valid bearer token string."""
        return self.get_token().token

    def refresh(self) -> AccessToken:
        """Exchange the refresh token for a new access token.

        Returns:
            The new access token, which replaces the cache.

        Raises:
            TokenRefreshError: If the token endpoint fails or rejects the refresh token.
        """
        data = {
            "client_id": self.client_id,
            "refresh_token": self._refresh_token,
            "grant_type": "refresh_token",
        }
        if self.client_secret:
            data["client_secret"] = self.client_secret

        logger.info("Refreshing access token...")
        try:
            response = self._client.post(self.token_url, data=data)
        except httpx.HTTPError as e:
            raise TokenRefreshError(f"OAuth token refresh request failed: {e}") from e

        if not response.is_success:
            raise TokenRefreshError(
                f"OAuth token refresh failed: {describe_token_error(response)}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
            access_token = payload["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise TokenRefreshError(f"Invalid token refresh response: {response.text}") from e

        token = AccessToken(
            token=access_token,
            issued_at=self.clock.now(),
            expires_in=int(payload.get("expires_in") or DEFAULT_TOKEN_EXPIRY_SECS),
            token_type=payload.get("token_type") or "Bearer",
        )
        self._cached = token
        self.refresh_count += 1

        logger.info(f"Access token refreshed, expires in {token.expires_in} seconds")
        return token

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> TokenManager:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
