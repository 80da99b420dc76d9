import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from calmly.chat import repository as repository_module
from calmly.chat.contracts import Message
from calmly.chat.repository import InMemorySessionRepository
from calmly.common.errors import NotFound


@pytest.fixture
def repo():
    return InMemorySessionRepository()


@pytest.mark.anyio
async def test_create_yields_distinct_ids(repo):
    first = await repo.create("u1")
    second = await repo.create("u1")
    assert first.sessionId != second.sessionId
    assert first.messages == []
    assert first.updatedAt >= first.createdAt


@pytest.mark.anyio
async def test_history_preserves_append_order(repo):
    session = await repo.create("u1")
    for i in range(5):
        await repo.append(session.sessionId, Message(role="user" if i % 2 == 0 else "assistant", content=f"m{i}"))

    history = await repo.history(session.sessionId)
    assert [m.content for m in history] == ["m0", "m1", "m2", "m3", "m4"]
    stamps = [m.timestamp for m in history]
    assert stamps == sorted(stamps)


@pytest.mark.anyio
async def test_append_bumps_updated_at(repo):
    session = await repo.create("u1")
    updated = await repo.append(session.sessionId, Message(role="user", content="hello"))
    assert updated.updatedAt >= session.updatedAt
    assert updated.updatedAt >= updated.createdAt
    assert updated.updatedAt == updated.messages[-1].timestamp


@pytest.mark.anyio
async def test_unknown_session_not_found(repo):
    with pytest.raises(NotFound):
        await repo.append("missing", Message(role="user", content="x"))
    with pytest.raises(NotFound):
        await repo.history("missing")
    with pytest.raises(NotFound):
        await repo.get("missing")


@pytest.mark.anyio
async def test_concurrent_appends_neither_lost_nor_duplicated(repo):
    session = await repo.create("u1")
    count = 50

    await asyncio.gather(
        *[repo.append(session.sessionId, Message(role="user", content=f"c{i}")) for i in range(count)]
    )

    history = await repo.history(session.sessionId)
    contents = [m.content for m in history]
    assert len(contents) == count
    assert sorted(contents) == sorted(f"c{i}" for i in range(count))
    stamps = [m.timestamp for m in history]
    assert stamps == sorted(stamps)


@pytest.mark.anyio
async def test_history_is_a_copy(repo):
    session = await repo.create("u1")
    await repo.append(session.sessionId, Message(role="user", content="keep"))
    history = await repo.history(session.sessionId)
    history.clear()
    assert len(await repo.history(session.sessionId)) == 1


@pytest.fixture
def ticking_clock(monkeypatch):
    start = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    ticks = iter(range(10_000))
    monkeypatch.setattr(repository_module, "_now", lambda: start + timedelta(seconds=next(ticks)))


@pytest.mark.anyio
async def test_list_is_scoped_ordered_and_stable(repo, ticking_clock):
    older = await repo.create("u1")
    newer = await repo.create("u1")
    await repo.create("someone-else")
    await repo.append(older.sessionId, Message(role="user", content="bump"))

    listing = await repo.list("u1")
    assert [s.sessionId for s in listing][0] == older.sessionId
    assert {s.sessionId for s in listing} == {older.sessionId, newer.sessionId}
    assert listing[0].messageCount == 1
    assert listing[0].lastMessage.content == "bump"

    again = await repo.list("u1")
    assert [s.sessionId for s in again] == [s.sessionId for s in listing]
