"""PKCE (Proof Key for Code Exchange) secrets."""

from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass, field

from authlib.oauth2.rfc7636 import create_s256_code_challenge

CHALLENGE_METHOD = "S256"


@dataclass(frozen=True)
class PKCESecret:
    """A code verifier and its derived S256 challenge.

    The verifier stays on this machine until the code exchange; only the
    challenge goes into the authorization URL.
    """

    verifier: str = field(repr=False)
    challenge: str
    method: str = CHALLENGE_METHOD

    @classmethod
    def generate(cls) -> PKCESecret:
        """Generate a fresh secret from 32 random bytes."""
        # 32 bytes -> 43 base64url chars, inside the 43-128 range of RFC 7636
        verifier = base64.urlsafe_b64encode(secrets.token_bytes(32)).decode("ascii").rstrip("=")
        return cls.from_verifier(verifier)

    @classmethod
    def from_verifier(cls, verifier: str) -> PKCESecret:
        """Derive the challenge for an existing verifier."""
        return cls(verifier=verifier, challenge=create_s256_code_challenge(verifier))
