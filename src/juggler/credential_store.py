"""Refresh token storage.

The long-lived Google refresh token is kept in the operating system's secret
store through ``keyring``:

- macOS: Keychain
- Windows: Credential Manager
- Linux: Secret Service (DBus)

``MemoryCredentialStore`` is a volatile stand-in for tests.

Usage:
    store = KeyringCredentialStore()
    store.store(refresh_token)
    try:
        token = store.get()
    except CredentialNotFoundError:
        print("Run 'juggler login' first")
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from juggler.config import KEYRING_ACCOUNT_GOOGLE_TASKS, KEYRING_SERVICE

logger = logging.getLogger(__name__)


class CredentialStoreError(Exception):
    """Base exception for credential store errors."""

    pass


class CredentialNotFoundError(CredentialStoreError):
    """Raised when no refresh token has been stored."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message or "No refresh token found in keychain. Run 'juggler login' to authenticate."
        )


class CredentialBackendError(CredentialStoreError):
    """Raised when the secret store itself fails."""

    pass


class CredentialStore(ABC):
    """Storage for a single refresh token."""

    @abstractmethod
    def store(self, refresh_token: str) -> None:
        """Persist the refresh token, replacing any previous one."""

    @abstractmethod
    def get(self) -> str:
        """Return the stored refresh token.

        Raises:
            CredentialNotFoundError: If nothing is stored.
            CredentialBackendError: If the backend fails.
        """

    @abstractmethod
    def delete(self) -> None:
        """Erase the stored refresh token.

        Raises:
            CredentialNotFoundError: If nothing is stored.
            CredentialBackendError: If the backend fails.
        """

    def describe(self) -> dict[str, str]:
        """Diagnostic details about the backend."""
        return {"backend": type(self).__name__}


class KeyringCredentialStore(CredentialStore):
    """Refresh token storage in the OS keychain."""

    def __init__(
        self,
        service: str = KEYRING_SERVICE,
        account: str = KEYRING_ACCOUNT_GOOGLE_TASKS,
    ):
        # Some backends treat an empty service or account as a wildcard
        if not service or not account:
            raise ValueError("Keyring service and account must be non-empty")
        self.service = service
        self.account = account

    def store(self, refresh_token: str) -> None:
        try:
            keyring.set_password(self.service, self.account, refresh_token)
        except KeyringError as e:
            raise CredentialBackendError(f"Failed to store refresh token: {e}") from e
        logger.info(f"Stored refresh token in keychain ({self.service}/{self.account})")

    def get(self) -> str:
        try:
            token = keyring.get_password(self.service, self.account)
        except KeyringError as e:
            raise CredentialBackendError(f"Failed to read refresh token: {e}") from e
        if token is None:
            raise CredentialNotFoundError()
        return token

    def delete(self) -> None:
        try:
            keyring.delete_password(self.service, self.account)
        except PasswordDeleteError as e:
            raise CredentialNotFoundError() from e
        except KeyringError as e:
            raise CredentialBackendError(f"Failed to delete refresh token: {e}") from e
        logger.info(f"Deleted refresh token from keychain ({self.service}/{self.account})")

    def describe(self) -> dict[str, str]:
        backend = keyring.get_keyring()
        return {
            "backend": f"{type(backend).__module__}.{type(backend).__name__}",
            "service": self.service,
            "account": self.account,
        }


class MemoryCredentialStore(CredentialStore):
    """Volatile refresh token storage, safe for concurrent use."""

    def __init__(self, refresh_token: str | None = None):
        self._lock = threading.Lock()
        self._token = refresh_token

    def store(self, refresh_token: str) -> None:
        with self._lock:
            self._token = refresh_token

    def get(self) -> str:
        with self._lock:
            if self._token is None:
                raise CredentialNotFoundError()
            return self._token

    def delete(self) -> None:
        with self._lock:
            if self._token is None:
                raise CredentialNotFoundError()
            self._token = None
