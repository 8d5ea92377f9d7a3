"""
Connection status derived from a credential's expiry.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

EXPIRING_WINDOW = timedelta(hours=2)
HOURS_WINDOW = timedelta(hours=24)


class TokenStatus(str, Enum):
    NOT_CONNECTED = "not-connected"
    CONNECTED = "connected"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class StatusInfo:
    """A status plus the message shown next to it."""

    status: TokenStatus
    message: str

    @property
    def is_connected(self) -> bool:
        """Tokens without a known expiry count as connected."""
        return self.status in (TokenStatus.CONNECTED, TokenStatus.EXPIRING, TokenStatus.UNKNOWN)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def classify(expires_at: Optional[datetime], now: Optional[datetime] = None) -> StatusInfo:
    """Classify a token by its remaining lifetime.

    Each bucket includes its lower bound: a token expiring exactly now is
    expired, one with exactly two hours left is connected.
    """
    if expires_at is None:
        return StatusInfo(TokenStatus.UNKNOWN, "Connected")

    now = now or datetime.now(timezone.utc)
    remaining = expires_at - now

    if remaining <= timedelta(0):
        return StatusInfo(TokenStatus.EXPIRED, "Expired - log in again")
    if remaining < EXPIRING_WINDOW:
        return StatusInfo(TokenStatus.EXPIRING, "Log in again soon")

    hours_left = remaining.total_seconds() / 3600
    if remaining < HOURS_WINDOW:
        return StatusInfo(TokenStatus.CONNECTED, f"Good for {_round_half_up(hours_left)} hours")

    days_left = _round_half_up(hours_left / 24)
    return StatusInfo(TokenStatus.CONNECTED, f"Good for {days_left} days")


def describe(credential, now: Optional[datetime] = None) -> StatusInfo:
    """Status for an optional credential; a missing one is not connected."""
    if credential is None:
        return StatusInfo(TokenStatus.NOT_CONNECTED, "Not connected")
    return classify(credential.expires_at, now)
