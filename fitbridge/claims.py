"""
Claim decoding for signed bearer tokens.
"""

import base64
import binascii
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _b64url_decode(segment: str) -> bytes:
    """Decode a base64url segment, tolerating stripped padding."""
    padded = segment + "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def decode_claims(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the payload claims of a three-part token, or None for anything else."""
    if not isinstance(token, str):
        return None

    parts = token.split(".")
    if len(parts) != 3 or not parts[1]:
        return None

    try:
        payload = json.loads(_b64url_decode(parts[1]))
    except (ValueError, UnicodeError, binascii.Error):
        # Opaque tokens are normal here, not worth more than a debug line
        logger.debug("Token payload is not decodable JSON")
        return None

    if not isinstance(payload, dict):
        return None
    return payload


def token_expiry(token: Optional[str]) -> Optional[datetime]:
    """Return the `exp` claim of a token as a UTC datetime, if there is one."""
    claims = decode_claims(token)
    if not claims:
        return None

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None

    try:
        return datetime.fromtimestamp(exp, timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
