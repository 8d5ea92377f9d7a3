"""
Token store for captured platform credentials.

One credential per platform, persisted as flat JSON after every mutation and
published to subscribers so a status list or badge can follow along.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .claims import token_expiry

logger = logging.getLogger(__name__)

Snapshot = Dict[str, "Credential"]
Subscriber = Callable[[Snapshot], None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Credential:
    """A captured bearer token for one platform."""

    platform: str
    raw_token: str
    captured_at: datetime
    expires_at: Optional[datetime] = None
    display_name: Optional[str] = None

    def to_json(self) -> Dict[str, Optional[str]]:
        """Serialize in the format the browser extension sends."""
        return {
            "token": self.raw_token,
            "capturedAt": _format_timestamp(self.captured_at),
            "platform": self.display_name or self.platform,
            "expiresAt": _format_timestamp(self.expires_at) if self.expires_at else None,
        }

    @classmethod
    def from_json(cls, platform: str, data: dict) -> Optional["Credential"]:
        """Build a credential from persisted data; entries without a token are dropped."""
        token = data.get("token") if isinstance(data, dict) else None
        if not token or not isinstance(token, str):
            return None

        captured_at = _parse_timestamp(data.get("capturedAt")) or utcnow()
        # Recompute when the file predates expiry tracking
        expires_at = _parse_timestamp(data.get("expiresAt")) or token_expiry(token)
        display_name = data.get("platform") if isinstance(data.get("platform"), str) else None
        return cls(platform, token, captured_at, expires_at, display_name)


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a store mutation."""

    changed: bool
    persisted: bool = True
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.changed


class JsonTokenFile:
    """File-backed persistence for the token store."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Snapshot:
        """Read the token file; a missing or unreadable file yields an empty mapping."""
        try:
            with open(self.path, "r") as file:
                raw = json.load(file)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token file {self.path}: {e}")
            return {}

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring token file {self.path}: expected a JSON object")
            return {}

        tokens = {}
        stamped = False
        for platform, data in raw.items():
            credential = Credential.from_json(platform, data)
            if credential:
                tokens[platform] = credential
                stamped = stamped or _parse_timestamp(data.get("capturedAt")) is None

        # Entries without a capture time get one now; write it so later loads agree
        if stamped:
            self.save(tokens)
        return tokens

    def save(self, tokens: Snapshot) -> bool:
        """Write all tokens; returns False instead of raising on I/O errors."""
        data = {platform: credential.to_json() for platform, credential in tokens.items()}
        tmp_path = f"{self.path}.tmp"
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp_path, "w") as file:
                json.dump(data, file, indent=4)
                file.write("\n")
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            logger.error(f"Failed to save tokens to {self.path}: {e}")
            return False
        return True


class TokenStore:
    """Mapping from platform key to its captured credential."""

    def __init__(self, persistence=None, clock: Callable[[], datetime] = utcnow,
                 display_names: Optional[Dict[str, str]] = None):
        self.persistence = persistence
        self.clock = clock
        self.display_names = display_names or {}
        self._tokens: Snapshot = {}
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()

        if persistence is not None:
            self._tokens = dict(persistence.load())
            logger.debug(f"Loaded {len(self._tokens)} token(s)")

    def capture(self, platform: str, raw_token: str) -> StoreResult:
        """Store a token unless the same value is already held for the platform."""
        if not platform or not raw_token:
            raise ValueError("capture needs a platform and a token")

        with self._lock:
            existing = self._tokens.get(platform)
            if existing is not None and existing.raw_token == raw_token:
                return StoreResult(changed=False)

            self._tokens[platform] = Credential(
                platform=platform,
                raw_token=raw_token,
                captured_at=self.clock(),
                expires_at=token_expiry(raw_token),
                display_name=self.display_names.get(platform),
            )
            logger.info(f"Captured {platform} token")
            return self._commit()

    def get(self, platform: str) -> Optional[Credential]:
        with self._lock:
            return self._tokens.get(platform)

    def list(self) -> Snapshot:
        """Return a copy of all credentials."""
        with self._lock:
            return dict(self._tokens)

    def clear(self, platform: Optional[str] = None) -> StoreResult:
        """Remove one platform's credential, or all of them when no platform is given."""
        with self._lock:
            if platform is None:
                removed = bool(self._tokens)
                self._tokens = {}
                logger.info("Cleared all tokens")
                return self._commit(publish=True, changed=removed)

            if self._tokens.pop(platform, None) is None:
                return StoreResult(changed=False)
            logger.info(f"Cleared {platform} token")
            return self._commit()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for post-mutation snapshots; returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _commit(self, publish: bool = True, changed: bool = True) -> StoreResult:
        result = self._persist(changed)
        if publish:
            self._publish()
        return result

    def _persist(self, changed: bool) -> StoreResult:
        if self.persistence is None:
            return StoreResult(changed=changed)
        if self.persistence.save(dict(self._tokens)):
            return StoreResult(changed=changed)
        return StoreResult(changed=changed, persisted=False,
                           error="Tokens changed in memory but could not be saved")

    def _publish(self) -> None:
        snapshot = dict(self._tokens)
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Token subscriber failed")
