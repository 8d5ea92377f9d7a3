import base64
import json
from datetime import datetime, timezone

import pytest

from fitbridge.token_store import TokenStore

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _b64url(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).decode().rstrip("=")


def build_jwt(**claims) -> str:
    return f"{_b64url({'alg': 'HS256', 'typ': 'JWT'})}.{_b64url(claims)}.signature-part"


class MemoryPersistence:
    """Records every save so tests can count writes."""

    def __init__(self, initial=None, fail=False):
        self.initial = dict(initial or {})
        self.fail = fail
        self.saves = []

    def load(self):
        return dict(self.initial)

    def save(self, tokens):
        self.saves.append(dict(tokens))
        return not self.fail


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_jwt():
    return build_jwt


@pytest.fixture
def persistence():
    return MemoryPersistence()


@pytest.fixture
def store(persistence):
    return TokenStore(persistence, clock=lambda: NOW)
