import asyncio
import gc

from inmo24x7.models.domain import ChatTurn, Session
from inmo24x7.services.session_store import InMemorySessionStore


def test_load_returns_fresh_session_for_unknown_user():
    store = InMemorySessionStore()
    session = store.load("u1")

    assert session.user_id == "u1"
    assert session.history == []
    assert session.lead_data.to_dict() == {}
    assert session.lead_id is None


def test_loaded_session_is_isolated_until_saved():
    store = InMemorySessionStore()
    session = store.load("u1")
    session.history.append(ChatTurn(role="user", content="hola"))
    session.lead_data.merge(zona="Palermo")

    assert store.load("u1").history == []

    store.save("u1", session)
    session.lead_id = 7
    stored = store.load("u1")
    assert [t.content for t in stored.history] == ["hola"]
    assert stored.lead_data.zona == "Palermo"
    assert stored.lead_id is None


def test_reset_discards_session():
    store = InMemorySessionStore()
    session = store.load("u1")
    session.lead_id = 3
    store.save("u1", session)

    store.reset("u1")

    assert "u1" not in store
    assert store.load("u1").lead_id is None


def test_history_window_keeps_most_recent_turns():
    session = Session(user_id="u1")
    for i in range(15):
        session.append_turns([ChatTurn(role="user", content=str(i))], limit=10)

    assert [t.content for t in session.history] == [str(i) for i in range(5, 15)]


def test_lock_serializes_turns_for_same_user():
    store = InMemorySessionStore()
    events = []

    async def turn(name):
        async with store.lock("u1"):
            events.append(f"{name}:start")
            await asyncio.sleep(0.01)
            events.append(f"{name}:end")

    async def main():
        await asyncio.gather(turn("a"), turn("b"))

    asyncio.run(main())
    assert events == ["a:start", "a:end", "b:start", "b:end"]


def test_lock_does_not_block_other_users():
    store = InMemorySessionStore()
    events = []

    async def turn(user_id):
        async with store.lock(user_id):
            events.append(f"{user_id}:start")
            await asyncio.sleep(0.01)
            events.append(f"{user_id}:end")

    async def main():
        await asyncio.gather(turn("u1"), turn("u2"))

    asyncio.run(main())
    assert events[:2] == ["u1:start", "u2:start"]


def test_idle_locks_are_released():
    store = InMemorySessionStore()

    async def main():
        for i in range(50):
            async with store.lock(f"user-{i}"):
                await asyncio.sleep(0)

    asyncio.run(main())
    gc.collect()

    assert len(store._locks) == 0
