"""
Capture adapters that feed tokens into the token store.

Two paths exist: sniffing the Authorization header of a request bound for a
known platform, and a paste flow for platforms that block non-browser logins.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple, Union

from .token_store import TokenStore

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 20


@dataclass(frozen=True)
class Platform:
    key: str
    name: str
    icon: str
    url_pattern: re.Pattern


def _platform(key: str, name: str, icon: str, pattern: str) -> Tuple[str, Platform]:
    return key, Platform(key, name, icon, re.compile(pattern))


PLATFORMS: Dict[str, Platform] = dict([
    _platform("mywhoosh", "MyWhoosh", "🚴", r"services?\d*\.mywhoosh\.com"),
    _platform("zwift", "Zwift", "🏔️", r"\.zwift\.com.*/api/"),
    _platform("igpsport", "iGPSport", "📡", r"prod\.en\.igpsport\.com"),
    _platform("trainingpeaks", "TrainingPeaks", "📊",
              r"trainingpeaks\.com/api|api\.trainingpeaks\.com|www\.trainingpeaks\.com"),
    _platform("intervals-icu", "Intervals.icu", "📈", r"intervals\.icu/api/"),
])


def display_names(platforms: Mapping[str, Platform] = PLATFORMS) -> Dict[str, str]:
    return {key: platform.name for key, platform in platforms.items()}


def match_platform(url: str, platforms: Mapping[str, Platform] = PLATFORMS) -> Optional[str]:
    """Return the key of the first platform whose pattern matches the URL."""
    for key, platform in platforms.items():
        if platform.url_pattern.search(url):
            return key
    return None


def extract_bearer(headers: Mapping[str, str]) -> Optional[str]:
    """Pull the bearer value out of an Authorization header, whatever its case."""
    for name, value in headers.items():
        if name.lower() == "authorization" and value:
            scheme, _, rest = value.strip().partition(" ")
            if scheme.lower() == "bearer":
                return rest.strip() or None
            return value.strip() or None
    return None


def capture_from_request(store: TokenStore, url: str, headers: Mapping[str, str],
                         platforms: Mapping[str, Platform] = PLATFORMS) -> Optional[str]:
    """Capture the token carried by a request to a known platform.

    Returns the platform key when a token was handed to the store, otherwise None.
    """
    platform = match_platform(url, platforms)
    if platform is None:
        return None

    token = extract_bearer(headers)
    if not token or len(token) <= MIN_TOKEN_LENGTH:
        logger.debug(f"No usable token on {platform} request")
        return None

    store.capture(platform, token)
    return platform


@dataclass(frozen=True)
class NeedInput:
    """The operator has to paste values copied from the browser."""

    platform: str
    login_url: str
    instructions: Tuple[str, ...]
    fields: Tuple[str, ...]


@dataclass(frozen=True)
class AlreadyConnected:
    platform: str
    details: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Captured:
    platform: str
    details: Dict[str, str] = field(default_factory=dict)
    persisted: bool = True


@dataclass(frozen=True)
class CaptureFailed:
    platform: str
    reason: str


LoginStep = Union[NeedInput, AlreadyConnected, Captured, CaptureFailed]


class PasteLogin:
    """Login by pasting a token from the browser's developer tools.

    `start()` never blocks: when no token is cached it returns NeedInput and
    the caller resumes the flow with `resume()` once it has the values.
    """

    def __init__(self, store: TokenStore, platform: str, login_url: str,
                 token_field: str, instructions: Tuple[str, ...],
                 extra_fields: Optional[Dict[str, str]] = None, config=None):
        self.store = store
        self.platform = platform
        self.login_url = login_url
        self.token_field = token_field
        self.instructions = instructions
        # field name -> config key the pasted value is saved under
        self.extra_fields = extra_fields or {}
        self.config = config

    def start(self, force: bool = False) -> LoginStep:
        if force:
            self.store.clear(self.platform)
            if self.config is not None:
                for config_key in self.extra_fields.values():
                    self.config.unset(config_key)

        if self.store.get(self.platform) is not None and self._extras_present():
            return AlreadyConnected(self.platform, self._saved_extras())

        return NeedInput(
            platform=self.platform,
            login_url=self.login_url,
            instructions=self.instructions,
            fields=(self.token_field, *self.extra_fields),
        )

    def resume(self, values: Mapping[str, Optional[str]]) -> LoginStep:
        """Finish the login with the values the operator pasted."""
        cleaned = {name: (values.get(name) or "").strip() for name in (self.token_field, *self.extra_fields)}
        missing = [name for name, value in cleaned.items() if not value]
        if missing:
            return CaptureFailed(self.platform, f"No {', '.join(missing)} provided")

        result = self.store.capture(self.platform, cleaned[self.token_field])
        persisted = result.persisted

        details = {}
        for name, config_key in self.extra_fields.items():
            details[name] = cleaned[name]
            if self.config is not None and not self.config.set(config_key, cleaned[name]):
                persisted = False

        return Captured(self.platform, details, persisted)

    def _extras_present(self) -> bool:
        if self.config is None:
            return True
        return all(self.config.get(key) for key in self.extra_fields.values())

    def _saved_extras(self) -> Dict[str, str]:
        if self.config is None:
            return {}
        return {name: self.config.get(key) for name, key in self.extra_fields.items()}
