"""Google OAuth login and token management."""

from juggler.google.exceptions import (
    AuthorizationError,
    CallbackChannelClosedError,
    CallbackTimeoutError,
    ClientConfigNotFoundError,
    GoogleAuthError,
    MalformedTokenResponseError,
    MissingRefreshTokenError,
    TokenError,
    TokenExchangeError,
    TokenRefreshError,
)
from juggler.google.oauth import (
    OAuthClientConfig,
    OAuthResult,
    build_authorization_url,
    load_client_config,
    run_oauth_flow,
)
from juggler.google.pkce import PKCESecret
from juggler.google.tokens import AccessToken, TokenManager

__all__ = [
    "AccessToken",
    "AuthorizationError",
    "CallbackChannelClosedError",
    "CallbackTimeoutError",
    "ClientConfigNotFoundError",
    "GoogleAuthError",
    "MalformedTokenResponseError",
    "MissingRefreshTokenError",
    "OAuthClientConfig",
    "OAuthResult",
    "PKCESecret",
    "TokenError",
    "TokenExchangeError",
    "TokenManager",
    "TokenRefreshError",
    "build_authorization_url",
    "load_client_config",
    "run_oauth_flow",
]
