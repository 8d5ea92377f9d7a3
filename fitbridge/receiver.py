"""
Loopback HTTP receiver for tokens sent by the browser extension.
"""

import logging
from typing import Any, Dict, List

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from . import settings
from .display import badge_text, status_lines
from .token_store import Snapshot, TokenStore

logger = logging.getLogger(__name__)


class ReceiveResponse(BaseModel):
    status: str
    updated: List[str]
    skipped: List[str]
    persisted: bool


def announce_tokens(snapshot: Snapshot) -> None:
    """Print the token status list whenever the store changes."""
    print(f"\n🔔 Tokens updated ({badge_text(snapshot) or 0} captured)")
    for line in status_lines(snapshot):
        print(line)


def create_app(store: TokenStore) -> FastAPI:
    """Build the receiver app around an existing store."""
    app = FastAPI(title="FitBridge token receiver")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.post("/api/tokens", response_model=ReceiveResponse)
    def receive_tokens(incoming: Dict[str, Any]) -> ReceiveResponse:
        updated, skipped = [], []
        persisted = True
        for platform, entry in incoming.items():
            token = entry.get("token") if isinstance(entry, dict) else None
            if not platform or not token or not isinstance(token, str):
                logger.warning(f"Skipping malformed {platform or '(empty)'} entry")
                skipped.append(platform)
                continue
            result = store.capture(platform, token)
            persisted = persisted and result.persisted
            if result.changed:
                updated.append(platform)
                logger.info(f"Received {platform} token")
        return ReceiveResponse(status="ok", updated=updated, skipped=skipped, persisted=persisted)

    @app.get("/health", response_class=PlainTextResponse)
    def health() -> str:
        return "FitBridge is running"

    return app


def serve(store: TokenStore, host: str = settings.RECEIVER_HOST, port: int = settings.RECEIVER_PORT) -> None:
    """Run the receiver until interrupted, printing the token list on every change."""
    store.subscribe(announce_tokens)
    logger.info(f"Token receiver listening on {host}:{port}")
    uvicorn.run(create_app(store), host=host, port=port, log_level=settings.LOG_LEVEL.lower())
