import threading
from datetime import timedelta

import pytest

from app.services.catalog import CatalogScope
from app.services.conversation import ConversationStore, Message, Role

EYE_SERUM = "Crystallure Supreme Advanced Eye Serum"


@pytest.fixture
def store(clock):
    return ConversationStore(clock=clock)


def _user(content, product=None):
    return Message(role=Role.USER, content=content, product_detected=product)


def test_new_session_ids_are_unique():
    ids = {ConversationStore.new_session_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(session_id.startswith("session_") for session_id in ids)


def test_unknown_session_has_empty_context(store):
    assert store.get_context("missing") == ""
    assert store.stats()["active_sessions"] == 0


def test_context_renders_product_and_roles(store):
    store.record("s1", _user("berapa ml eye serum?", EYE_SERUM))
    store.record("s1", Message(role=Role.ASSISTANT, content="30 ml."))

    assert store.get_context("s1") == (
        f"Produk yang sedang dibicarakan: {EYE_SERUM}\n"
        "Percakapan sebelumnya:\n"
        "User: berapa ml eye serum?\n"
        "Assistant: 30 ml."
    )


def test_history_capped_and_context_shows_last_five(store):
    for i in range(11):
        store.record("s1", _user(f"pesan {i}"))

    history = store.history("s1")
    assert len(history) == 10
    assert history[0].content == "pesan 1"

    context_lines = store.get_context("s1").splitlines()
    assert context_lines[0] == "Percakapan sebelumnya:"
    assert context_lines[1:] == [f"User: pesan {i}" for i in range(6, 11)]


def test_catalog_scope_clears_last_product(store):
    store.record("s1", _user("eye serum?", EYE_SERUM))
    store.record("s1", _user("apa aja produk crystallure", CatalogScope.ALL_PRODUCTS))
    assert store.last_product("s1") is None
    assert "Produk yang sedang dibicarakan" not in store.get_context("s1")


def test_message_without_product_keeps_last_product(store):
    store.record("s1", _user("eye serum?", EYE_SERUM))
    store.record("s1", _user("makasih"))
    assert store.last_product("s1") == EYE_SERUM


def test_last_product_waits_for_session_lock(store):
    store.record("s1", _user("eye serum?", EYE_SERUM))
    session = store._sessions["s1"]
    seen = []

    with session.lock:
        reader = threading.Thread(target=lambda: seen.append(store.last_product("s1")))
        reader.start()
        reader.join(timeout=0.2)
        assert reader.is_alive()
        assert seen == []

    reader.join(timeout=2)
    assert seen == [EYE_SERUM]


def test_last_product_unknown_session(store):
    assert store.last_product("missing") is None


def test_idle_sessions_are_evicted(store, clock):
    store.record("old", _user("halo"))
    clock.advance(minutes=20)
    store.record("fresh", _user("halo"))
    clock.advance(minutes=11)

    assert store.evict_expired() == 1
    assert store.get_context("old") == ""
    assert store.get_context("fresh") != ""


def test_session_at_exact_timeout_is_kept(store, clock):
    store.record("s1", _user("halo"))
    clock.advance(minutes=30)
    assert store.evict_expired() == 0


def test_reading_context_counts_as_activity(clock):
    store = ConversationStore(clock=clock, timeout=timedelta(minutes=5))
    store.record("s1", _user("halo"))
    clock.advance(minutes=4)
    store.get_context("s1")
    clock.advance(minutes=4)
    assert store.evict_expired() == 0


def test_stats(store):
    store.record("a", _user("1"))
    store.record("a", _user("2"))
    store.record("b", _user("3"))
    assert store.stats() == {"active_sessions": 2, "total_messages": 3}


def test_concurrent_records_are_not_lost(clock):
    store = ConversationStore(clock=clock, max_history=1000)

    def worker(n):
        for i in range(50):
            store.record("shared", _user(f"{n}-{i}"))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store.history("shared")) == 200
