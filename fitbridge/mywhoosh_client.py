"""
MyWhoosh web API client for listing rides and downloading FIT files.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import requests

from .capture import PasteLogin
from .config_store import ConfigStore
from .token_store import TokenStore

logger = logging.getLogger(__name__)

PLATFORM = "mywhoosh"
LOGIN_URL = "https://event.mywhoosh.com/auth/login"
SERVICE_URL = "https://service14.mywhoosh.com/v2"
WHOOSH_ID_KEY = "mywhoosh:whoosh_id"

LOGIN_INSTRUCTIONS = (
    "Press F12 to open Developer Tools",
    "Go to Application tab → Cookies → event.mywhoosh.com",
    "Find 'whoosh_token' and copy its value",
    "Also copy the 'whoosh_uuid' value",
)


@dataclass(frozen=True)
class ActivitySummary:
    """One ride from the MyWhoosh activity list. Every field may be missing."""

    id: Optional[str] = None
    date: Optional[int] = None
    title: Optional[str] = None
    sport_type: Optional[str] = None
    route_name: Optional[str] = None
    distance: Optional[float] = None
    elevation: Optional[int] = None
    watt: Optional[int] = None
    heartrate: Optional[int] = None
    ride_duration: Optional[str] = None
    activity_file_id: Optional[str] = None

    @property
    def file_id(self) -> Optional[str]:
        return self.activity_file_id or self.id

    @classmethod
    def from_json(cls, data: dict) -> "ActivitySummary":
        def text(key):
            value = data.get(key)
            return str(value) if value is not None else None

        def number(key, kind):
            value = data.get(key)
            if isinstance(value, bool):
                return None
            try:
                return kind(value) if value is not None else None
            except (TypeError, ValueError):
                return None

        return cls(
            id=text("id"),
            date=number("date", int),
            title=text("title"),
            sport_type=text("sportType"),
            route_name=text("routeName"),
            distance=number("distance", float),
            elevation=number("elevation", int),
            watt=number("watt", int),
            heartrate=number("heartrate", int),
            ride_duration=text("rideDuration"),
            activity_file_id=text("activityFileId"),
        )


def create_login(store: TokenStore, config: ConfigStore) -> PasteLogin:
    """Paste login for MyWhoosh, whose game app blocks API logins."""
    return PasteLogin(
        store,
        PLATFORM,
        LOGIN_URL,
        token_field="whoosh_token",
        instructions=LOGIN_INSTRUCTIONS,
        extra_fields={"whoosh_uuid": WHOOSH_ID_KEY},
        config=config,
    )


class MyWhooshClient:
    """Client for the MyWhoosh web API, authenticated with the stored token."""

    def __init__(self, store: TokenStore, session: Optional[requests.Session] = None, timeout: float = 30):
        self.store = store
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
            "Accept": "application/json",
            "Origin": "https://event.mywhoosh.com",
        })

    def _auth_headers(self) -> Optional[dict]:
        credential = self.store.get(PLATFORM)
        if credential is None:
            logger.error("No MyWhoosh token, run the login command first")
            return None
        return {"Authorization": f"Bearer {credential.raw_token}"}

    def list_activities(self, page: int = 1) -> List[ActivitySummary]:
        """Fetch one page of rides, newest first."""
        headers = self._auth_headers()
        if headers is None:
            return []

        try:
            response = self.session.post(
                f"{SERVICE_URL}/rider/profile/activities",
                json={"sortDate": "DESC", "page": page},
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to list MyWhoosh activities: {e}")
            return []
        except ValueError:
            logger.error("MyWhoosh activity list was not JSON")
            return []

        data = body.get("data") if isinstance(body, dict) else None
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            return []
        return [ActivitySummary.from_json(item) for item in results if isinstance(item, dict)]

    def download_fit(self, file_id: str) -> Optional[bytes]:
        """Download a ride's FIT file through its presigned URL."""
        headers = self._auth_headers()
        if headers is None:
            return None

        try:
            response = self.session.post(
                f"{SERVICE_URL}/rider/profile/download-activity-file",
                json={"fileId": file_id},
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to get download URL for {file_id}: {e}")
            return None
        except ValueError:
            logger.error(f"Download URL response for {file_id} was not JSON")
            return None

        url = body.get("data") if isinstance(body, dict) else None
        if not url or not isinstance(url, str):
            logger.error(f"No download URL in response for {file_id}")
            return None

        try:
            # The presigned URL carries its own auth
            fit_response = self.session.get(url, timeout=self.timeout)
            fit_response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to download FIT for {file_id}: {e}")
            return None
        return fit_response.content
