"""
Push captured tokens to a local FitBridge receiver.
"""

import logging

import requests

from .token_store import TokenStore

logger = logging.getLogger(__name__)


def send_tokens(store: TokenStore, endpoint: str, timeout: float = 5) -> bool:
    """POST every captured token to the endpoint once. No retries."""
    tokens = store.list()
    if not tokens:
        logger.warning("No tokens to send")
        return False

    payload = {}
    for platform, credential in tokens.items():
        data = credential.to_json()
        data.pop("expiresAt")
        payload[platform] = data

    try:
        response = requests.post(endpoint, json=payload, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Could not reach FitBridge at {endpoint}: {e}")
        return False

    logger.info(f"Sent {len(payload)} token(s) to {endpoint}")
    return True
