"""
Intervals.icu API client for uploading FIT files.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from . import settings
from .config_store import ConfigStore

logger = logging.getLogger(__name__)

BASE_URL = "https://intervals.icu/api/v1"
API_KEY_KEY = "intervals:apikey"
ATHLETE_ID_KEY = "intervals:athleteid"


@dataclass(frozen=True)
class UploadResult:
    success: bool
    response: Optional[str] = None
    error: Optional[str] = None


class IntervalsClient:
    """Client for Intervals.icu, using Basic auth with the literal user `API_KEY`."""

    def __init__(self, config: ConfigStore, session: Optional[requests.Session] = None, timeout: float = 30):
        self.config = config
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def api_key(self) -> Optional[str]:
        return self.config.get(API_KEY_KEY) or settings.INTERVALS_API_KEY

    @property
    def athlete_id(self) -> Optional[str]:
        return self.config.get(ATHLETE_ID_KEY) or settings.INTERVALS_ATHLETE_ID

    def is_configured(self) -> bool:
        return bool(self.api_key and self.athlete_id)

    def upload_fit(self, data: bytes, filename: str) -> UploadResult:
        """Upload FIT bytes as a new activity."""
        if not self.is_configured():
            return UploadResult(success=False, error="Not configured")

        try:
            response = self.session.post(
                f"{BASE_URL}/athlete/{self.athlete_id}/activities",
                auth=("API_KEY", self.api_key),
                files={"file": (filename, data, "application/octet-stream")},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Upload error for {filename}: {e}")
            return UploadResult(success=False, error=str(e))

        if response.ok:
            logger.info(f"Uploaded {filename} to Intervals.icu")
            return UploadResult(success=True, response=response.text)

        logger.error(f"Upload of {filename} failed ({response.status_code}): {response.text}")
        return UploadResult(success=False, error=response.text or f"HTTP {response.status_code}")

    def test_connection(self) -> bool:
        """Check the credentials by fetching the athlete profile."""
        if not self.is_configured():
            return False

        try:
            response = self.session.get(
                f"{BASE_URL}/athlete/{self.athlete_id}",
                auth=("API_KEY", self.api_key),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Intervals.icu connection error: {e}")
            return False

        if not response.ok:
            logger.error(f"Intervals.icu connection failed: {response.status_code}")
        return response.ok
