import json
import re

import pytest

from shopassist.errors import ClientInputError
from shopassist.persistence.kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore
from shopassist.persistence.session_store import SESSION_KEY, SessionStore, new_session_id


def test_new_session_id_format():
    assert re.fullmatch(r"session_\d+_[a-z0-9]{9}", new_session_id())
    assert new_session_id() != new_session_id()


def test_session_id_is_created_once_and_reused():
    store = InMemoryKeyValueStore()
    first = SessionStore(store).get_session_id()

    # a fresh instance on the same store sees the same id
    assert SessionStore(store).get_session_id() == first
    assert store.get(SESSION_KEY) == first


def test_session_id_survives_reload_from_disk(tmp_path):
    path = tmp_path / "state" / "state.json"
    first = SessionStore(JsonFileKeyValueStore(path)).get_session_id()

    assert SessionStore(JsonFileKeyValueStore(path)).get_session_id() == first
    assert json.loads(path.read_text())[SESSION_KEY] == first


def test_set_session_id_overwrites():
    sessions = SessionStore(InMemoryKeyValueStore())
    sessions.get_session_id()
    sessions.set_session_id("  shared-42 ")
    assert sessions.get_session_id() == "shared-42"


@pytest.mark.parametrize("bad", ["", "   ", None])
def test_empty_session_id_is_rejected(bad):
    sessions = SessionStore(InMemoryKeyValueStore({SESSION_KEY: "keep"}))
    with pytest.raises(ClientInputError):
        sessions.set_session_id(bad)
    assert sessions.get_session_id() == "keep"


def test_json_store_reads_fresh_values_each_time(tmp_path):
    path = tmp_path / "state.json"
    a = JsonFileKeyValueStore(path)
    b = JsonFileKeyValueStore(path)

    a.set("access_token", "tok")
    assert b.get("access_token") == "tok"
    b.remove("access_token")
    assert a.get("access_token") is None


def test_json_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json")
    store = JsonFileKeyValueStore(path)

    assert store.get(SESSION_KEY) is None
    store.set(SESSION_KEY, "fresh")
    assert store.get(SESSION_KEY) == "fresh"
    assert list(tmp_path.glob("*.tmp")) == []
