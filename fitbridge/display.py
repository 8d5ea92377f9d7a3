"""
Presentation helpers for captured tokens.
"""

from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

from .capture import PLATFORMS, Platform
from .status import TokenStatus, describe
from .token_store import Snapshot

STATUS_MARKERS = {
    TokenStatus.NOT_CONNECTED: "⚪",
    TokenStatus.CONNECTED: "✅",
    TokenStatus.UNKNOWN: "✅",
    TokenStatus.EXPIRING: "⚠️",
    TokenStatus.EXPIRED: "❌",
}


def badge_text(snapshot: Snapshot) -> str:
    """Token count for a badge, empty when nothing is captured."""
    return str(len(snapshot)) if snapshot else ""


def format_captured_at(captured_at: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    minutes = int((now - captured_at).total_seconds() // 60)
    hours = minutes // 60

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    return captured_at.astimezone().strftime("%Y-%m-%d")


def status_lines(snapshot: Snapshot, platforms: Mapping[str, Platform] = PLATFORMS,
                 now: Optional[datetime] = None) -> List[str]:
    """One line per platform, known platforms first, then any other captured keys."""
    lines = []
    for key in [*platforms, *(k for k in snapshot if k not in platforms)]:
        platform = platforms.get(key)
        icon = platform.icon if platform else "🔑"
        name = platform.name if platform else key

        credential = snapshot.get(key)
        info = describe(credential, now)
        line = f"{STATUS_MARKERS[info.status]} {icon} {name}: {info.message}"
        if credential is not None:
            line += f" (captured {format_captured_at(credential.captured_at, now)})"
        lines.append(line)
    return lines


def export_config(snapshot: Snapshot) -> Dict[str, str]:
    """Tokens keyed as `<platform>Token`, the format pasted into FitBridge config."""
    return {f"{key}Token": credential.raw_token for key, credential in snapshot.items()}
