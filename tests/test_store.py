import pytest

from live_quiz.core.errors import QuizValidationError
from live_quiz.core.store import InMemoryStore, participant_path, session_path


def test_write_read_and_nested_paths():
    store = InMemoryStore()
    store.write(session_path("111111"), {"info": {"title": "T"}, "state": {"status": "waiting"}})

    assert store.read("session/111111/info/title") == "T"
    assert store.exists(session_path("111111", "state"))
    assert not store.exists(session_path("222222"))
    assert store.children("session") == ["111111"]


def test_read_returns_a_copy():
    store = InMemoryStore()
    store.write("a/b", {"items": [1]})

    value = store.read("a/b")
    value["items"].append(2)

    assert store.read("a/b") == {"items": [1]}


def test_update_merges_fields():
    store = InMemoryStore()
    store.write("a/state", {"status": "waiting", "showResult": False})
    store.update("a/state", {"showResult": True})

    assert store.read("a/state") == {"status": "waiting", "showResult": True}


def test_delete_removes_subtree():
    store = InMemoryStore()
    store.write(participant_path("1", "p1"), {"id": "p1"})
    store.write(participant_path("1", "p2"), {"id": "p2"})

    store.delete(session_path("1", "participants"))

    assert store.read(session_path("1", "participants")) is None
    store.delete("missing/path")


def test_compare_and_set_only_writes_on_match():
    store = InMemoryStore()
    assert store.compare_and_set("x", None, {"v": 1})
    assert not store.compare_and_set("x", {"v": 2}, {"v": 3})
    assert store.compare_and_set("x", {"v": 1}, {"v": 2})
    assert store.read("x") == {"v": 2}


def test_subscribers_receive_latest_value_for_related_paths():
    store = InMemoryStore()
    seen_session = []
    seen_state = []
    store.subscribe(session_path("9"), seen_session.append)
    unsubscribe = store.subscribe(session_path("9", "state"), seen_state.append)

    store.write(session_path("9", "state"), {"status": "active"})
    store.write(participant_path("9", "p"), {"id": "p"})
    unsubscribe()
    store.write(session_path("9", "state"), {"status": "finished"})

    assert seen_state == [{"status": "active"}]
    assert len(seen_session) == 3
    assert seen_session[-1]["state"] == {"status": "finished"}


def test_failing_subscriber_does_not_block_the_write():
    store = InMemoryStore()
    received = []

    def broken(_):
        raise RuntimeError("observer crashed")

    store.subscribe("k", broken)
    store.subscribe("k", received.append)
    store.write("k", 1)

    assert store.read("k") == 1
    assert received == [1]


def test_participant_path_takes_a_single_segment():
    assert participant_path("123456", "p1") == "session/123456/participants/p1"
    for bad in ("", "  ", "a/b", "/"):
        with pytest.raises(QuizValidationError):
            participant_path("123456", bad)
