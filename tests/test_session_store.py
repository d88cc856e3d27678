import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from zapwa.core.errors import SessionPersistenceError
from zapwa.models.chat import ChatSession
from zapwa.orchestrator.session_store import (
    add_message,
    close_session,
    get_or_create_session,
    get_recent_messages,
)


def test_new_session_without_id(run_db):
    async def scenario(db):
        ctx = await get_or_create_session(db, "lic-1", None, "08123456789")
        return ctx.session, ctx.messages

    session, messages = run_db(scenario)

    assert session.id
    assert session.is_active is True
    assert session.customer_identifier == "08123456789"
    assert messages == []


def test_resume_returns_same_session_with_history(run_db):
    async def scenario(db):
        first = await get_or_create_session(db, "lic-1", None, "cust")
        await add_message(db, first.session, "user", "hi")
        await add_message(db, first.session, "assistant", "hello!")
        again = await get_or_create_session(db, "lic-1", first.id, "cust")
        return first.id, again.id, [(m.role, m.content) for m in again.messages]

    first_id, again_id, history = run_db(scenario)

    assert again_id == first_id
    assert history == [("user", "hi"), ("assistant", "hello!")]


def test_unknown_or_foreign_session_id_starts_fresh(run_db):
    async def scenario(db):
        owned = await get_or_create_session(db, "lic-1", None, "cust")
        foreign = await get_or_create_session(db, "lic-2", owned.id, "cust")
        unknown = await get_or_create_session(db, "lic-1", "does-not-exist", "cust")
        return owned.id, foreign.id, unknown.id

    owned_id, foreign_id, unknown_id = run_db(scenario)

    assert foreign_id != owned_id
    assert unknown_id not in (owned_id, foreign_id)


def test_closed_session_is_never_resumed(run_db):
    async def scenario(db):
        first = await get_or_create_session(db, "lic-1", None, "cust")
        await close_session(db, first.id)
        # Closing twice is a no-op
        await close_session(db, first.id)
        second = await get_or_create_session(db, "lic-1", first.id, "cust")
        rows = (await db.execute(select(ChatSession).order_by(ChatSession.created_at))).scalars().all()
        return first.id, second.id, [(r.id, r.is_active) for r in rows]

    first_id, second_id, rows = run_db(scenario)

    assert second_id != first_id
    assert dict(rows) == {first_id: False, second_id: True}


def test_messages_get_increasing_sequence_numbers(run_db):
    async def scenario(db):
        ctx = await get_or_create_session(db, "lic-1", None, "cust")
        a = await add_message(db, ctx.session, "user", "one")
        b = await add_message(db, ctx.session, "assistant", "two", tool_calls=[{"id": "c1", "name": "x", "arguments": {}}])
        c = await add_message(db, ctx.session, "tool", "three", tool_call_id="c1")
        return [m.sequence_number for m in (a, b, c)], b.tool_calls, c.tool_call_id

    seqs, tool_calls, tool_call_id = run_db(scenario)

    assert seqs == [1, 2, 3]
    assert tool_calls == [{"id": "c1", "name": "x", "arguments": {}}]
    assert tool_call_id == "c1"


def test_add_message_rejects_unknown_role(run_db):
    async def scenario(db):
        ctx = await get_or_create_session(db, "lic-1", None, "cust")
        with pytest.raises(ValueError):
            await add_message(db, ctx.session, "system", "nope")

    run_db(scenario)


def test_recent_messages_window_and_order(run_db):
    async def scenario(db):
        ctx = await get_or_create_session(db, "lic-1", None, "cust")
        for i in range(5):
            await add_message(db, ctx.session, "user", f"m{i}")
        oldest_first = await get_recent_messages(db, ctx.id, limit=3)
        newest_first = await get_recent_messages(db, ctx.id, limit=3, newest_first=True)
        return [m.content for m in oldest_first], [m.content for m in newest_first]

    oldest_first, newest_first = run_db(scenario)

    assert oldest_first == ["m2", "m3", "m4"]
    assert newest_first == ["m4", "m3", "m2"]


def test_session_insert_failure_is_fatal(run_db):
    attempts = []

    async def failing_flush(*args, **kwargs):
        attempts.append(1)
        raise OperationalError("INSERT INTO chat_sessions", {}, Exception("disk I/O error"))

    async def scenario(db):
        db.flush = failing_flush
        with pytest.raises(SessionPersistenceError) as exc_info:
            await get_or_create_session(db, "lic-1", None, "cust")
        return exc_info.value

    error = run_db(scenario)

    # Not retried
    assert attempts == [1]
    assert error.status_code == 500
    assert error.public_message == "Failed to create a new chat session. Please try again."
