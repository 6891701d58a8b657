"""Data models for the Grohe Smarthome integration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def normalize_token(token: str | None) -> str:
    """Strip all whitespace from a token (copy/paste line breaks)."""
    return "".join(str(token or "").split())


@dataclass(frozen=True)
class TokenPair:
    """Tokens returned by a login or refresh.

    The access token is only ever held in memory; the refresh token is
    persisted in the config entry.
    """

    access_token: str
    refresh_token: str
    id_token: str | None = None
    expires_in: int | None = None
    token_type: str | None = None

    @classmethod
    def from_response(
        cls, data: dict[str, Any], *, fallback_refresh_token: str = ""
    ) -> TokenPair:
        """Build a pair from an OIDC token response body.

        Args:
            data: Decoded JSON body containing at least access_token
            fallback_refresh_token: Kept when the response does not
                rotate the refresh token

        """
        expires_in = data.get("expires_in")
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=normalize_token(data.get("refresh_token"))
            or fallback_refresh_token,
            id_token=data.get("id_token"),
            expires_in=int(expires_in) if expires_in is not None else None,
            token_type=data.get("token_type"),
        )
