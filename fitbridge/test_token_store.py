"""
Token store tests: capture idempotence, clearing, notifications and persistence.
"""

import json
from datetime import timedelta

import pytest

from conftest import NOW, MemoryPersistence
from fitbridge.token_store import Credential, JsonTokenFile, TokenStore


class TestCapture:

    def test_first_capture_writes_and_derives_expiry(self, store, persistence, make_jwt):
        token = make_jwt(exp=int((NOW + timedelta(hours=10)).timestamp()))

        result = store.capture("mywhoosh", token)

        assert result.changed and result.persisted
        credential = store.get("mywhoosh")
        assert credential.raw_token == token
        assert credential.captured_at == NOW
        assert credential.expires_at == NOW + timedelta(hours=10)
        assert len(persistence.saves) == 1

    def test_identical_token_is_a_no_op(self, store, persistence):
        events = []
        store.subscribe(events.append)

        first = store.capture("zwift", "opaque-token-value-1234567890")
        second = store.capture("zwift", "opaque-token-value-1234567890")

        assert first.changed
        assert not second.changed
        assert len(persistence.saves) == 1
        assert len(events) == 1

    def test_new_token_replaces_old_one(self, persistence, make_jwt):
        times = iter([NOW, NOW + timedelta(minutes=5)])
        store = TokenStore(persistence, clock=lambda: next(times))
        events = []
        store.subscribe(events.append)

        store.capture("zwift", make_jwt(exp=int((NOW + timedelta(hours=1)).timestamp())))
        store.capture("zwift", make_jwt(exp=int((NOW + timedelta(hours=6)).timestamp())))

        credential = store.get("zwift")
        assert credential.captured_at == NOW + timedelta(minutes=5)
        assert credential.expires_at == NOW + timedelta(hours=6)
        assert len(events) == 2
        assert events[-1]["zwift"] is credential

    def test_opaque_token_has_no_expiry(self, store):
        store.capture("igpsport", "not-a-jwt")

        assert store.get("igpsport").expires_at is None

    def test_unknown_platforms_are_accepted(self, store):
        store.capture("garmin", "some-token")

        assert "garmin" in store.list()

    @pytest.mark.parametrize("platform, token", [("", "token"), ("zwift", ""), ("zwift", None)])
    def test_malformed_pairs_are_rejected(self, store, platform, token):
        with pytest.raises(ValueError):
            store.capture(platform, token)

    def test_display_name_comes_from_table(self, persistence):
        store = TokenStore(persistence, clock=lambda: NOW, display_names={"mywhoosh": "MyWhoosh"})

        store.capture("mywhoosh", "token-value")

        assert store.get("mywhoosh").display_name == "MyWhoosh"


class TestReadOperations:

    def test_get_missing_platform(self, store):
        assert store.get("zwift") is None

    def test_list_is_a_copy(self, store):
        store.capture("zwift", "token-a")

        snapshot = store.list()
        snapshot.clear()

        assert "zwift" in store.list()

    def test_expired_entries_stay_visible(self, store, make_jwt):
        store.capture("zwift", make_jwt(exp=int((NOW - timedelta(days=2)).timestamp())))

        assert store.get("zwift") is not None


class TestClear:

    def test_clear_all_persists_empty_mapping(self, store, persistence):
        store.capture("zwift", "token-a")
        store.capture("igpsport", "token-b")

        result = store.clear()

        assert result.changed
        assert store.list() == {}
        assert persistence.saves[-1] == {}

    def test_clear_one_platform(self, store):
        store.capture("zwift", "token-a")
        store.capture("igpsport", "token-b")

        store.clear("zwift")

        assert list(store.list()) == ["igpsport"]

    def test_clear_missing_platform_succeeds_quietly(self, store, persistence):
        events = []
        store.subscribe(events.append)

        result = store.clear("trainingpeaks")

        assert not result.changed
        assert result.persisted
        assert events == []
        assert persistence.saves == []

    def test_clear_all_notifies_with_empty_snapshot(self, store):
        store.capture("zwift", "token-a")
        events = []
        store.subscribe(events.append)

        store.clear()

        assert events == [{}]


class TestNotifications:

    def test_unsubscribe_stops_events(self, store):
        events = []
        unsubscribe = store.subscribe(events.append)

        store.capture("zwift", "token-a")
        unsubscribe()
        store.capture("zwift", "token-b")

        assert len(events) == 1

    def test_failing_subscriber_does_not_break_capture(self, store):
        def broken(snapshot):
            raise RuntimeError("boom")

        events = []
        store.subscribe(broken)
        store.subscribe(events.append)

        result = store.capture("zwift", "token-a")

        assert result.changed
        assert len(events) == 1


class TestPersistenceFailures:

    def test_failed_save_is_reported_but_memory_is_kept(self):
        persistence = MemoryPersistence(fail=True)
        store = TokenStore(persistence, clock=lambda: NOW)

        result = store.capture("zwift", "token-a")

        assert result.changed
        assert not result.persisted
        assert result.error
        assert store.get("zwift").raw_token == "token-a"

    def test_store_without_persistence(self):
        store = TokenStore(clock=lambda: NOW)

        assert store.capture("zwift", "token-a").persisted


class TestJsonTokenFile:

    def test_round_trip_through_file(self, tmp_path, make_jwt):
        path = tmp_path / "tokens.json"
        token = make_jwt(exp=int((NOW + timedelta(hours=3)).timestamp()))
        store = TokenStore(JsonTokenFile(str(path)), clock=lambda: NOW, display_names={"zwift": "Zwift"})
        store.capture("zwift", token)

        on_disk = json.loads(path.read_text())
        assert on_disk["zwift"]["token"] == token
        assert on_disk["zwift"]["platform"] == "Zwift"
        assert on_disk["zwift"]["capturedAt"] == "2026-03-01T12:00:00Z"

        reloaded = TokenStore(JsonTokenFile(str(path)))
        credential = reloaded.get("zwift")
        assert credential.captured_at == NOW
        assert credential.expires_at == NOW + timedelta(hours=3)

    def test_extension_format_without_expiry_is_recomputed(self, tmp_path, make_jwt):
        path = tmp_path / "tokens.json"
        token = make_jwt(exp=int((NOW + timedelta(hours=3)).timestamp()))
        path.write_text(json.dumps({
            "mywhoosh": {"token": token, "capturedAt": "2026-03-01T11:00:00.000Z", "platform": "MyWhoosh"},
            "broken": {"capturedAt": "2026-03-01T11:00:00Z"},
        }))

        tokens = JsonTokenFile(str(path)).load()

        assert list(tokens) == ["mywhoosh"]
        assert tokens["mywhoosh"].expires_at == NOW + timedelta(hours=3)
        assert tokens["mywhoosh"].captured_at == NOW - timedelta(hours=1)

    def test_missing_capture_time_is_stamped_once(self, tmp_path):
        path = tmp_path / "tokens.json"
        path.write_text(json.dumps({"zwift": {"token": "opaque-token"}}))

        first = JsonTokenFile(str(path)).load()["zwift"].captured_at
        second = JsonTokenFile(str(path)).load()["zwift"].captured_at

        assert first == second
        assert json.loads(path.read_text())["zwift"]["capturedAt"]

    def test_missing_file_loads_empty(self, tmp_path):
        assert JsonTokenFile(str(tmp_path / "nope.json")).load() == {}

    @pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
    def test_corrupt_file_loads_empty(self, tmp_path, content):
        path = tmp_path / "tokens.json"
        path.write_text(content)

        assert JsonTokenFile(str(path)).load() == {}

    def test_creates_missing_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "tokens.json"

        assert JsonTokenFile(str(path)).save({"zwift": Credential("zwift", "token-a", NOW)})
        assert path.exists()

    def test_unwritable_location_returns_false(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")

        assert not JsonTokenFile(str(blocker / "tokens.json")).save({})

    def test_failed_write_leaves_no_temp_file(self, tmp_path):
        target = tmp_path / "tokens.json"
        target.mkdir()

        assert not JsonTokenFile(str(target)).save({"zwift": Credential("zwift", "token-a", NOW)})
        assert not (tmp_path / "tokens.json.tmp").exists()
