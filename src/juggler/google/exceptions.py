"""Google authentication exceptions."""


class GoogleAuthError(Exception):
    """Base exception for Google authentication errors."""

    pass


class ClientConfigNotFoundError(GoogleAuthError):
    """Raised when no OAuth client configuration can be found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"OAuth client credentials not found at {path}. "
            "Download a Desktop app OAuth client from Google Cloud Console, "
            "or set JUGGLER_CLIENT_ID."
        )


class AuthorizationError(GoogleAuthError):
    """Raised when the browser callback reports a failure."""

    pass


class CallbackChannelClosedError(AuthorizationError):
    """Raised when the callback listener stopped without delivering a result."""

    def __init__(self):
        super().__init__("Failed to receive authorization code")


class CallbackTimeoutError(AuthorizationError):
    """Raised when no callback arrives within the configured timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"No OAuth callback received within {timeout:g} seconds")


class TokenError(GoogleAuthError):
    """Raised when there's an issue with the OAuth token endpoint."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TokenExchangeError(TokenError):
    """Raised when the authorization code exchange is rejected."""

    pass


class MissingRefreshTokenError(TokenError):
    """Raised when a successful exchange returns no refresh token."""

    def __init__(self):
        super().__init__(
            "No refresh token in response. This might happen if you've already "
            "granted permission. Try revoking access at "
            "https://myaccount.google.com/permissions and try again."
        )


class MalformedTokenResponseError(TokenError):
    """Raised when the token endpoint returns an unparseable body."""

    pass


class TokenRefreshError(TokenError):
    """Raised when exchanging the refresh token for an access token fails."""

    pass
