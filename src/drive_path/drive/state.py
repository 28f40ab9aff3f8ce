"""Mutable state shared by the token manager and the path resolver."""

from __future__ import annotations

from dataclasses import dataclass, field

from drive_path.drive.cache import ResolutionCache


@dataclass(frozen=True)
class CredentialSession:
    """A bearer token and the instant (epoch seconds) it stops being usable."""

    access_token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


@dataclass
class DriveState:
    """Process-wide credential session and resolution cache.

    One instance is handed to both the TokenManager and the PathResolver.
    Concurrent requests share it without locking; the worst outcome of a
    race is a redundant token refresh or an extra lookup.
    """

    session: CredentialSession | None = None
    cache: ResolutionCache = field(default_factory=ResolutionCache)
