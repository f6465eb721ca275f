import threading

from core.session_store import Session, SessionStore


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_get_creates_empty_session_lazily():
    store = SessionStore()

    assert "whatsapp:+1" not in store
    session = store.get("whatsapp:+1")

    assert session == Session()
    assert "whatsapp:+1" in store


def test_get_returns_a_snapshot():
    store = SessionStore()
    snapshot = store.get("a")
    snapshot.selected_child_id = "E1"

    assert store.get("a").selected_child_id is None


def test_put_then_get_round_trips_fields():
    store = SessionStore()
    store.put("a", Session(selected_child_id="E1", voice_requested=True, last_message="notes"))

    assert store.get("a").to_dict() == {
        "selected_child_id": "E1",
        "in_voice": False,
        "voice_requested": True,
        "last_message": "notes",
    }


def test_clear_resets_flags_but_keeps_entry():
    store = SessionStore()
    store.put("a", Session(selected_child_id="E1", in_voice=True, voice_requested=True, last_message="notes"))

    store.clear("a")
    session = store.get("a")

    assert "a" in store
    assert session.selected_child_id is None
    assert not session.in_voice
    assert not session.voice_requested


def test_lru_eviction_beyond_max_entries():
    store = SessionStore(max_entries=2)
    store.get("a")
    store.get("b")
    store.get("a")
    store.get("c")

    assert "b" not in store
    assert "a" in store and "c" in store
    assert len(store) == 2


def test_idle_sessions_expire_after_ttl():
    clock = _Clock()
    store = SessionStore(ttl_seconds=10, clock=clock)
    store.put("a", Session(selected_child_id="E1"))

    clock.now = 5
    assert store.get("a").selected_child_id == "E1"

    clock.now = 16
    store.get("b")
    assert "a" not in store

    assert store.get("a").selected_child_id is None


def test_entry_in_use_is_never_evicted():
    store = SessionStore(max_entries=1)
    with store.locked("a") as session:
        session.selected_child_id = "E1"
        store.get("b")
        assert "a" in store

    assert store.get("a").selected_child_id == "E1"


def test_same_sender_turns_are_serialized():
    store = SessionStore()
    counter_key = "whatsapp:+33600000001"
    workers = 8
    rounds = 200

    def bump() -> None:
        for _ in range(rounds):
            with store.locked(counter_key) as session:
                current = int(session.last_message or "0")
                session.last_message = str(current + 1)

    threads = [threading.Thread(target=bump) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get(counter_key).last_message == str(workers * rounds)


def test_different_senders_do_not_block_each_other():
    store = SessionStore()
    entered = threading.Event()

    def other_sender() -> None:
        with store.locked("b"):
            entered.set()

    with store.locked("a"):
        thread = threading.Thread(target=other_sender)
        thread.start()
        assert entered.wait(timeout=2)
    thread.join()
