"""
FitSync CLI: move rides from MyWhoosh to Intervals.icu and manage captured tokens.
"""

import logging
import os
import sys
import webbrowser
from datetime import datetime
from typing import List, Optional

from . import settings
from .capture import AlreadyConnected, Captured, CaptureFailed, NeedInput, display_names
from .config_store import ConfigStore
from .display import badge_text, status_lines
from .handoff import send_tokens
from .intervals_client import API_KEY_KEY, ATHLETE_ID_KEY, IntervalsClient
from .mywhoosh_client import PLATFORM as MYWHOOSH, MyWhooshClient, create_login
from .receiver import serve
from .token_store import JsonTokenFile, TokenStore

# Configure logging - RFC5424 compatible, minimalist
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s %(levelname)s %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

USAGE = """
Usage: python -m fitbridge.fitsync <command> [options]

Commands:
  login [--force]            Authenticate with MyWhoosh (paste token from browser)
  config set <key> <value>   Set a configuration value
  config get <key>           Show a configuration value
  config list                List all configuration values
  tokens                     Show captured tokens and their status
  tokens-clear [platform]    Forget one or all captured tokens
  list                       List activities from MyWhoosh
  download <activity-id>     Download FIT file from MyWhoosh [--output <dir>]
  upload <file.fit>          Upload FIT file to Intervals.icu
  upload test                Test Intervals.icu connection
  sync                       Sync rides to Intervals.icu [--since YYYY-MM-DD] [--dry-run]
  serve [--port <port>]      Receive tokens from the browser extension
  send [--endpoint <url>]    Send captured tokens to a running receiver

Configuration keys:
  intervals:apikey           Your Intervals.icu API key
  intervals:athleteid        Your Intervals.icu athlete ID (e.g. i12345)"""


def create_config_store() -> ConfigStore:
    return ConfigStore(settings.CONFIG_PATH)


def create_token_store() -> TokenStore:
    return TokenStore(JsonTokenFile(settings.TOKENS_PATH), display_names=display_names())


def _option(args: List[str], name: str) -> Optional[str]:
    """Value following a flag, e.g. `--since 2026-01-01`."""
    if name in args:
        index = args.index(name)
        if index + 1 < len(args):
            return args[index + 1]
    return None


def _warn_if_unsaved(persisted: bool) -> None:
    if not persisted:
        print("⚠️ Changes are active for this run but could not be saved to disk.")


def handle_config(args: List[str], config: ConfigStore) -> bool:
    sub_command = args[0].lower() if args else ""

    if sub_command == "list":
        for key, value in config.items():
            print(f"{key} = {value}")
    elif sub_command == "set" and len(args) >= 3:
        if not config.set(args[1], args[2]):
            print(f"❌ Could not save {args[1]}")
            return False
        print(f"✅ Set {args[1]}")
    elif sub_command == "get" and len(args) >= 2:
        print(config.get(args[1]) or "(not set)")
    else:
        print("Usage: python -m fitbridge.fitsync config <set|get|list> [key] [value]")
        return False
    return True


def run_login(store: TokenStore, config: ConfigStore, force: bool = False) -> bool:
    """Drive the MyWhoosh paste login, prompting only when the flow asks for input."""
    login = create_login(store, config)
    step = login.start(force=force)

    if isinstance(step, AlreadyConnected):
        print(f"Using cached token for WhooshId: {step.details.get('whoosh_uuid', '?')}")
        return True

    if isinstance(step, NeedInput):
        print("\n=== MyWhoosh Authentication ===")
        print("The MyWhoosh game app blocks API logins, so we need to use browser auth.")
        print(f"\n🔗 Opening {step.login_url} ...")
        if not webbrowser.open(step.login_url):
            print(f"Could not open browser. Please navigate to:\n  {step.login_url}")

        print("\nAfter logging in:")
        for number, instruction in enumerate(step.instructions, start=1):
            print(f"  {number}. {instruction}")
        print()

        values = {field: input(f"📝 Paste your {field}: ") for field in step.fields}
        step = login.resume(values)

    if isinstance(step, Captured):
        print(f"\n✅ Token saved! WhooshId: {step.details.get('whoosh_uuid', '?')}")
        _warn_if_unsaved(step.persisted)
        return True

    if isinstance(step, CaptureFailed):
        print(f"\n❌ {step.reason}.")
    return False


def _ensure_login(store: TokenStore, config: ConfigStore) -> bool:
    if store.get(MYWHOOSH) is not None:
        return True
    return run_login(store, config)


def handle_tokens(store: TokenStore) -> None:
    snapshot = store.list()
    print("🔍 Token Status:")
    print()
    for line in status_lines(snapshot):
        print(line)
    print()
    print(f"Captured: {badge_text(snapshot) or 0}")


def handle_list(client: MyWhooshClient) -> None:
    print("Fetching activities from MyWhoosh...")
    activities = client.list_activities()

    if not activities:
        print("No activities found.")
        return

    print(f"Found {len(activities)} activities:")
    print("-" * 80)
    for activity in activities:
        when = datetime.fromtimestamp(activity.date).strftime("%Y-%m-%d %H:%M") if activity.date else "?"
        distance = f"{activity.distance:.1f}km" if activity.distance is not None else "?km"
        print(f"  {activity.file_id} | {when} | {activity.title or '-'} | {distance} | "
              f"{activity.watt or 0}W | {activity.ride_duration or '-'}")


def handle_download(args: List[str], client: MyWhooshClient) -> bool:
    if not args or args[0].startswith("--"):
        print("Usage: python -m fitbridge.fitsync download <activity-id> [--output <dir>]")
        return False

    activity_id = args[0]
    output_dir = _option(args, "--output") or os.getcwd()

    print(f"Downloading activity {activity_id}...")
    data = client.download_fit(activity_id)
    if data is None:
        print("❌ Download failed.")
        return False

    os.makedirs(output_dir, exist_ok=True)
    file_path = os.path.join(output_dir, f"{activity_id}.fit")
    with open(file_path, "wb") as file:
        file.write(data)

    print(f"✅ Downloaded: {file_path}")
    return True


def _require_intervals(client: IntervalsClient) -> bool:
    if client.is_configured():
        return True
    print("❌ Intervals.icu not configured.")
    print(f"Run: python -m fitbridge.fitsync config set {API_KEY_KEY} <your-api-key>")
    print(f"Run: python -m fitbridge.fitsync config set {ATHLETE_ID_KEY} <your-athlete-id>")
    print("\nGet your API key from: https://intervals.icu/settings")
    return False


def handle_upload(args: List[str], client: IntervalsClient) -> bool:
    if not args:
        print("Usage: python -m fitbridge.fitsync upload <file.fit> | upload test")
        return False
    if not _require_intervals(client):
        return False

    if args[0].lower() == "test":
        if client.test_connection():
            print("✅ Intervals.icu connection OK")
            return True
        print("❌ Intervals.icu connection failed")
        return False

    file_path = args[0]
    if not os.path.isfile(file_path):
        print(f"❌ File not found: {file_path}")
        return False

    filename = os.path.basename(file_path)
    print(f"Uploading {filename} to Intervals.icu...")
    with open(file_path, "rb") as file:
        result = client.upload_fit(file.read(), filename)

    if result.success:
        print("✅ Upload complete!")
        return True
    print(f"❌ Upload failed: {result.error}")
    return False


def handle_sync(args: List[str], whoosh: MyWhooshClient, intervals: IntervalsClient) -> bool:
    since = None
    since_raw = _option(args, "--since")
    if since_raw:
        try:
            since = datetime.strptime(since_raw, "%Y-%m-%d")
        except ValueError:
            print(f"❌ Invalid --since date: {since_raw} (expected YYYY-MM-DD)")
            return False
    dry_run = "--dry-run" in args

    if not dry_run and not _require_intervals(intervals):
        return False

    print("Starting sync...")
    print("Fetching activities from MyWhoosh...")
    activities = whoosh.list_activities()

    if since is not None:
        since_unix = since.timestamp()
        activities = [a for a in activities if a.date is not None and a.date >= since_unix]

    if not activities:
        print("No activities to sync.")
        return True

    print(f"Found {len(activities)} activities to sync.")

    if dry_run:
        print("[DRY RUN] Would sync:")
        for activity in activities:
            print(f"  - {activity.title or activity.file_id}")
        return True

    succeeded = failed = 0
    for activity in activities:
        print(f"\nProcessing: {activity.title or activity.file_id}")
        if not activity.file_id:
            print("  ✗ No activity file id")
            failed += 1
            continue

        data = whoosh.download_fit(activity.file_id)
        if data is None:
            print("  ✗ Failed to download")
            failed += 1
            continue

        result = intervals.upload_fit(data, f"{activity.file_id}.fit")
        if result.success:
            print("  ✓ Synced to Intervals.icu")
            succeeded += 1
        else:
            print(f"  ✗ Failed to upload: {result.error}")
            failed += 1

    print(f"\nSync complete: {succeeded} succeeded, {failed} failed")
    return failed == 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for FitSync CLI commands."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(USAGE)
        return

    command, rest = args[0].lower(), args[1:]
    config = create_config_store()
    store = create_token_store()
    ok = True

    if command == "config":
        ok = handle_config(rest, config)

    elif command == "login":
        ok = run_login(store, config, force="--force" in rest or "-f" in rest)

    elif command == "tokens":
        handle_tokens(store)

    elif command == "tokens-clear":
        platform = rest[0] if rest else None
        result = store.clear(platform)
        print(f"🧹 Cleared {platform + ' token' if platform else 'all tokens'}")
        _warn_if_unsaved(result.persisted)

    elif command in ("list", "download", "sync"):
        if not _ensure_login(store, config):
            sys.exit(1)
        whoosh = MyWhooshClient(store)

        if command == "list":
            handle_list(whoosh)
        elif command == "download":
            ok = handle_download(rest, whoosh)
        else:
            ok = handle_sync(rest, whoosh, IntervalsClient(config))

    elif command == "upload":
        ok = handle_upload(rest, IntervalsClient(config))

    elif command == "serve":
        port = _option(rest, "--port")
        if port is not None and not port.isdigit():
            print(f"❌ Invalid port: {port}")
            sys.exit(1)
        print(f"🌉 Listening for tokens on port {port or settings.RECEIVER_PORT}")
        serve(store, port=int(port) if port else settings.RECEIVER_PORT)

    elif command == "send":
        if not store.list():
            print("❌ No tokens captured")
            sys.exit(1)
        endpoint = _option(rest, "--endpoint") or config.get("fitbridge:endpoint") or settings.HANDOFF_ENDPOINT
        ok = send_tokens(store, endpoint)
        print("✅ Tokens sent to FitBridge!" if ok else "❌ Could not reach FitBridge")

    else:
        print(f"\nUnknown command: {command}")
        print(USAGE)
        ok = False

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
