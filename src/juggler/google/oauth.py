"""Google OAuth browser login using PKCE.

This module provides the one-time interactive login:
- PKCE secret generation and authorization URL construction
- A local callback listener that receives the authorization code
- Exchange of the code for a long-lived refresh token

Client credentials are read from the environment (JUGGLER_CLIENT_ID,
JUGGLER_CLIENT_SECRET) or from the data directory:
    ~/.juggler/google_oauth_client.json
"""

from __future__ import annotations

import json
import logging
import os
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
from authlib.common.security import generate_token
from authlib.common.urls import add_params_to_uri

from juggler.config import (
    GOOGLE_OAUTH_AUTHORIZE_URL,
    GOOGLE_OAUTH_TOKEN_URL,
    GOOGLE_TASKS_SCOPE,
    get_client_config_path,
)
from juggler.google.callback import CallbackServer
from juggler.google.exceptions import (
    ClientConfigNotFoundError,
    MalformedTokenResponseError,
    MissingRefreshTokenError,
    TokenExchangeError,
)
from juggler.google.pkce import PKCESecret

logger = logging.getLogger(__name__)

CLIENT_TYPE_GUIDANCE = (
    "Make sure the OAuth client is a 'Desktop app' (installed application) client. "
    "'Web application' clients are confidential and cannot complete this flow."
)


@dataclass(frozen=True)
class OAuthClientConfig:
    """OAuth client identity registered in Google Cloud Console."""

    client_id: str
    client_secret: str | None = field(default=None, repr=False)
    client_type: str = "installed"


@dataclass(frozen=True)
class OAuthResult:
    """Outcome of a successful login."""

    refresh_token: str = field(repr=False)
    scope: str | None = None


def load_client_config(path: str | Path | None = None) -> OAuthClientConfig:
    """Load the OAuth client configuration.

    Environment variables win over the file. The file may be a Google
    download ({"installed": {...}} or {"web": {...}}) or a flat
    {"client_id": ..., "client_secret": ...} object.

    Args:
        path: Credentials file. Defaults to ~/.juggler/google_oauth_client.json.

    Returns:
        The client configuration.

    Raises:
        ClientConfigNotFoundError: If neither the environment nor the file provide a client id.
        ValueError: If the file is not valid client JSON.
    """
    env_id = os.environ.get("JUGGLER_CLIENT_ID")
    env_secret = os.environ.get("JUGGLER_CLIENT_SECRET")
    if env_id:
        return OAuthClientConfig(client_id=env_id, client_secret=env_secret)

    config_path = Path(path) if path else get_client_config_path()
    if not config_path.exists():
        raise ClientConfigNotFoundError(str(config_path))

    with open(config_path) as f:
        try:
            creds = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {config_path}: {e}") from e

    # Handle both web and installed app credential formats
    if "installed" in creds:
        client_type, app_creds = "installed", creds["installed"]
    elif "web" in creds:
        client_type, app_creds = "web", creds["web"]
        logger.warning(f"{config_path} holds a web client. {CLIENT_TYPE_GUIDANCE}")
    else:
        client_type, app_creds = "installed", creds

    client_id = app_creds.get("client_id")
    if not client_id:
        raise ValueError(f"No client_id in {config_path}")

    logger.info(f"Loaded OAuth client from {config_path}")
    return OAuthClientConfig(
        client_id=client_id,
        client_secret=env_secret or app_creds.get("client_secret"),
        client_type=client_type,
    )


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    pkce: PKCESecret,
    state: str | None = None,
    scope: str = GOOGLE_TASKS_SCOPE,
    authorize_url: str = GOOGLE_OAUTH_AUTHORIZE_URL,
) -> str:
    """Construct the consent URL.

    Only the PKCE challenge is embedded; the verifier never leaves this process
    until the code exchange.
    """
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": scope,
        "access_type": "offline",
        "prompt": "consent",
        "code_challenge": pkce.challenge,
        "code_challenge_method": pkce.method,
    }
    if state:
        params["state"] = state
    return add_params_to_uri(authorize_url, params)


def launch_browser(url: str, open_browser: Callable[[str], Any] = webbrowser.open) -> bool:
    """Open ``url`` in the default browser.

    Failures are logged, never raised: the user can still visit the URL by hand.

    Returns:
        True if the browser reported success.
    """
    try:
        opened = open_browser(url)
    except Exception as e:
        logger.error(f"Failed to open browser: {e}. Please manually visit the URL above.")
        return False

    if opened is False:
        logger.error("Failed to open browser. Please manually visit the URL above.")
        return False
    return True


def describe_token_error(response: httpx.Response) -> str:
    """Render a token endpoint failure as ``<error>: <description>`` when possible."""
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict) and isinstance(data.get("error"), str):
        description = data.get("error_description")
        return f"{data['error']}: {description}" if description else data["error"]

    return f"HTTP {response.status_code} - {response.text}"


async def exchange_code(
    code: str,
    verifier: str,
    redirect_uri: str,
    client_id: str,
    client_secret: str | None = None,
    token_url: str = GOOGLE_OAUTH_TOKEN_URL,
    http_client: httpx.AsyncClient | None = None,
) -> OAuthResult:
    """Exchange an authorization code for a refresh token.

    Args:
        code: Authorization code from the callback.
        verifier: The PKCE verifier whose challenge went into the consent URL.
        redirect_uri: Same redirect URI used for the consent URL.
        client_id: OAuth client ID.
        client_secret: Sent only when configured.
        token_url: Token endpoint.
        http_client: Client to use; a temporary one is created if omitted.

    Returns:
        OAuthResult carrying the refresh token.

    Raises:
        TokenExchangeError: If the endpoint rejects the exchange or is unreachable.
        MissingRefreshTokenError: If the response has no refresh token.
        MalformedTokenResponseError: If the response is not token JSON.
    """
    data = {
        "client_id": client_id,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": redirect_uri,
        "code_verifier": verifier,
    }
    if client_secret:
        data["client_secret"] = client_secret

    logger.info("Exchanging authorization code for tokens...")
    try:
        if http_client is None:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(token_url, data=data)
        else:
            response = await http_client.post(token_url, data=data)
    except httpx.HTTPError as e:
        raise TokenExchangeError(f"Token exchange request failed: {e}") from e

    if not response.is_success:
        raise TokenExchangeError(
            f"Token exchange failed ({response.status_code}): "
            f"{describe_token_error(response)}. {CLIENT_TYPE_GUIDANCE}",
            status_code=response.status_code,
        )

    try:
        token = response.json()
    except ValueError as e:
        raise MalformedTokenResponseError(f"Invalid token response: {e}") from e
    if not isinstance(token, dict):
        raise MalformedTokenResponseError(f"Invalid token response: {response.text}")

    refresh_token = token.get("refresh_token")
    if not refresh_token:
        raise MissingRefreshTokenError()

    logger.info("Authorization code exchanged for refresh token")
    return OAuthResult(refresh_token=refresh_token, scope=token.get("scope"))


async def run_oauth_flow(
    client_id: str,
    port: int = 0,
    *,
    client_secret: str | None = None,
    scope: str = GOOGLE_TASKS_SCOPE,
    authorize_url: str = GOOGLE_OAUTH_AUTHORIZE_URL,
    token_url: str = GOOGLE_OAUTH_TOKEN_URL,
    timeout: float | None = None,
    open_browser: Callable[[str], Any] = webbrowser.open,
    http_client: httpx.AsyncClient | None = None,
) -> OAuthResult:
    """Run the interactive PKCE login and return the refresh token.

    Args:
        client_id: OAuth client ID.
        port: Local callback port; 0 picks a free one.
        client_secret: Included in the code exchange when configured.
        scope: Scope to request.
        authorize_url: Consent endpoint.
        token_url: Token endpoint.
        timeout: Seconds to wait for the callback; None waits indefinitely.
        open_browser: Browser launcher, ``webbrowser.open`` by default.
        http_client: HTTP client for the code exchange.

    Returns:
        OAuthResult with the refresh token.

    Raises:
        AuthorizationError: If consent fails, times out, or the listener dies.
        TokenError: If the code exchange fails.
    """
    logger.info("Starting OAuth flow for Google Tasks API...")
    logger.info(f"Client ID: {client_id}")

    pkce = PKCESecret.generate()
    state = generate_token(32)

    server = CallbackServer(port=port, expected_state=state)
    await server.start()
    try:
        redirect_uri = server.redirect_uri
        url = build_authorization_url(
            client_id,
            redirect_uri,
            pkce,
            state=state,
            scope=scope,
            authorize_url=authorize_url,
        )

        logger.info("Opening browser for authentication...")
        logger.info(f"If your browser doesn't open automatically, please visit: {url}")
        launch_browser(url, open_browser)

        code = await server.wait_for_code(timeout=timeout)
    finally:
        await server.stop()

    return await exchange_code(
        code,
        pkce.verifier,
        redirect_uri,
        client_id,
        client_secret=client_secret,
        token_url=token_url,
        http_client=http_client,
    )
