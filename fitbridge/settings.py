"""
Environment-driven settings for FitBridge.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


FITBRIDGE_HOME = os.path.expanduser(os.environ.get("FITBRIDGE_HOME", "~/.fitbridge"))
CONFIG_PATH = os.path.join(FITBRIDGE_HOME, "config.json")
TOKENS_PATH = os.path.join(FITBRIDGE_HOME, "tokens.json")

RECEIVER_HOST = os.environ.get("FITBRIDGE_HOST", "127.0.0.1")
RECEIVER_PORT = _env_int("FITBRIDGE_PORT", 5847)
HANDOFF_ENDPOINT = os.environ.get("FITBRIDGE_ENDPOINT", f"http://localhost:{RECEIVER_PORT}/api/tokens")

LOG_LEVEL = os.environ.get("FITBRIDGE_LOG_LEVEL", "INFO").upper()

INTERVALS_API_KEY = os.environ.get("INTERVALS_API_KEY")
INTERVALS_ATHLETE_ID = os.environ.get("INTERVALS_ATHLETE_ID")
