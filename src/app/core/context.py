"""Explicit caller context passed into the gate, queue and sync connectors.

The session collaborator (sign-in, OAuth consent) is outside this service.
Whatever identity and provider token it established arrives here as an
immutable CallerContext value. Nothing reads caller identity from module
state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AuthProvider(str, Enum):
    """Identity providers a caller can be signed in with."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"
    EMAIL = "email"

    @classmethod
    def parse(cls, value: str | None) -> AuthProvider | None:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class CallerContext:
    """Immutable identity and provider credential of the current caller."""

    email: str
    auth_provider: str | None = None
    access_token: str | None = None  # provider OAuth token, never logged

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)

    @property
    def provider(self) -> AuthProvider | None:
        return AuthProvider.parse(self.auth_provider)

    @property
    def is_identified(self) -> bool:
        return bool(self.normalized_email)

    def has_credential_for(self, provider: AuthProvider) -> bool:
        """True if the caller holds an access token for the given provider."""
        return bool(self.access_token) and self.provider == provider


def normalize_email(value: str | None) -> str:
    """Lowercase and trim an address for identity comparison."""
    return (value or "").strip().lower()
