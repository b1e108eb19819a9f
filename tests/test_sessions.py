import aiosqlite
import pytest

from nia.core import sessions
from nia.core.db import Store
from nia.core.exception import StoreUnavailable, ValidationError
from nia.core.type import NewMessage, NewSession


def new_session(start=1_700_000_000_000, duration=90, **kwargs):
    # Times are epoch milliseconds, the span carries a sub-second remainder
    values = dict(
        start_time=start,
        end_time=start + duration * 1000 + 500,
        duration_seconds=duration,
        model="gpt-4o-realtime-preview",
    )
    values.update(kwargs)
    return NewSession(**values)


def transcript(*pairs):
    return [
        NewMessage(
            speaker=speaker, text=text, timestamp=1_700_000_000_000 + i * 1000
        )
        for i, (speaker, text) in enumerate(pairs)
    ]


async def count_rows(store, table):
    async with store.connection() as conn:
        result = await conn.execute(f"SELECT COUNT(*) FROM {table}")
        return (await result.fetchone())[0]


async def test_save_and_read_back(store):
    session_id = await sessions.save_session(
        store,
        new_session(
            input_audio_tokens=120,
            output_text_tokens=40,
            total_cost=0.05,
            mic_device="USB Mic",
        ),
        transcript(("You", "Hello"), ("Agent", "Hi there")),
    )

    detail = await sessions.get_session_with_messages(store, session_id)

    assert detail.session.id == session_id
    assert detail.session.input_audio_tokens == 120
    assert detail.session.output_audio_tokens == 0
    assert detail.session.total_cost == pytest.approx(0.05)
    assert detail.session.mic_device == "USB Mic"
    assert detail.session.speaker_device is None
    assert detail.session.created_at > 0
    assert [m.speaker for m in detail.messages] == ["You", "Agent"]
    assert all(m.session_id == session_id for m in detail.messages)


async def test_ids_increase_with_insertion(store):
    first = await sessions.save_session(store, new_session(), [])
    second = await sessions.save_session(store, new_session(), [])
    assert second > first


async def test_missing_session_returns_none(store):
    assert await sessions.get_session(store, 404) is None
    assert await sessions.get_session_with_messages(store, 404) is None


async def test_messages_ordered_by_timestamp(store):
    session_id = await sessions.save_session(store, new_session(), [])
    for text, timestamp in [("third", 30), ("first", 10), ("second", 20)]:
        await sessions.add_message(
            store, session_id,
            NewMessage(speaker="You", text=text, timestamp=timestamp)
        )

    messages = await sessions.list_messages(store, session_id)

    assert [m.text for m in messages] == ["first", "second", "third"]


async def test_recent_sessions_first(store):
    ids = [await sessions.save_session(store, new_session(), []) for _ in range(3)]
    # ids[1] is the oldest, ids[0] the newest
    created = {ids[1]: 1000, ids[2]: 2000, ids[0]: 3000}
    async with store.connection() as conn:
        for session_id, created_at in created.items():
            await conn.execute(
                "UPDATE sessions SET created_at = ? WHERE id = ?",
                (created_at, session_id)
            )

    listed = await sessions.list_sessions(store)
    limited = await sessions.list_sessions(store, limit=2)

    assert [s.id for s in listed] == [ids[0], ids[2], ids[1]]
    assert [s.id for s in limited] == [ids[0], ids[2]]


async def test_delete_session_cascades_to_messages(store):
    kept = await sessions.save_session(
        store, new_session(), transcript(("You", "keep me"))
    )
    doomed = await sessions.save_session(
        store, new_session(),
        transcript(("You", "a"), ("Agent", "b"), ("You", "c")),
    )

    assert await sessions.delete_session(store, doomed) is True

    assert await sessions.get_session(store, doomed) is None
    assert await sessions.list_messages(store, doomed) == []
    assert len(await sessions.list_messages(store, kept)) == 1
    assert await count_rows(store, "messages") == 1


async def test_delete_unknown_session(store):
    assert await sessions.delete_session(store, 12345) is False


async def test_delete_single_message(store):
    session_id = await sessions.save_session(
        store, new_session(), transcript(("You", "a"), ("Agent", "b"))
    )
    first = (await sessions.list_messages(store, session_id))[0]

    assert await sessions.delete_message(store, first.id) is True
    assert await sessions.delete_message(store, first.id) is False
    remaining = await sessions.list_messages(store, session_id)
    assert [m.text for m in remaining] == ["b"]
    assert await sessions.get_session(store, session_id) is not None


@pytest.mark.parametrize("speaker", ["You", "Agent"])
async def test_known_speakers_accepted(store, speaker):
    session_id = await sessions.save_session(store, new_session(), [])
    message_id = await sessions.add_message(
        store, session_id,
        NewMessage(speaker=speaker, text="hi", timestamp=1)
    )
    assert message_id > 0


async def test_unknown_speaker_rejected(store):
    session_id = await sessions.save_session(store, new_session(), [])

    with pytest.raises(aiosqlite.IntegrityError):
        await sessions.add_message(
            store, session_id,
            NewMessage(speaker="Bystander", text="hi", timestamp=1)
        )

    assert await sessions.list_messages(store, session_id) == []


async def test_save_session_is_all_or_nothing(store):
    with pytest.raises(aiosqlite.IntegrityError):
        await sessions.save_session(
            store, new_session(),
            transcript(("You", "fine"), ("Bystander", "not allowed")),
        )

    assert await count_rows(store, "sessions") == 0
    assert await count_rows(store, "messages") == 0


async def test_message_requires_existing_session(store):
    with pytest.raises(aiosqlite.IntegrityError):
        await sessions.add_message(
            store, 999, NewMessage(speaker="You", text="orphan", timestamp=1)
        )


async def test_duration_is_floored_seconds_of_the_time_span(store):
    start = 1_700_000_000_000
    session_id = await sessions.save_session(
        store,
        NewSession(
            start_time=start, end_time=start + 90_999,
            duration_seconds=90, model="m"
        ),
        [],
    )
    saved = await sessions.get_session(store, session_id)
    assert saved.start_time == start
    assert saved.duration_seconds == 90


@pytest.mark.parametrize("duration", [91, 90_999, 0])
async def test_duration_must_match_time_span(store, duration):
    start = 1_700_000_000_000
    bad = NewSession(
        start_time=start, end_time=start + 90_999,
        duration_seconds=duration, model="m"
    )
    with pytest.raises(ValidationError):
        await sessions.save_session(store, bad, [])
    assert await count_rows(store, "sessions") == 0


async def test_stats_on_empty_store(store):
    stats = await sessions.get_session_stats(store)
    assert stats.total_sessions == 0
    assert stats.total_duration == 0
    assert stats.total_cost == 0
    assert stats.average_duration == 0
    assert stats.total_messages == 0


async def test_stats(store):
    await sessions.save_session(
        store, new_session(duration=60, total_cost=0.25),
        transcript(("You", "a"), ("Agent", "b")),
    )
    await sessions.save_session(
        store, new_session(duration=120, total_cost=0.5),
        transcript(("You", "c")),
    )

    stats = await sessions.get_session_stats(store)

    assert stats.total_sessions == 2
    assert stats.total_duration == 180
    assert stats.total_cost == pytest.approx(0.75)
    assert stats.average_duration == pytest.approx(90)
    assert stats.total_messages == 3


async def test_connection_requires_open_store(db_path):
    store = Store(db_path)
    with pytest.raises(StoreUnavailable):
        await sessions.list_sessions(store)


async def test_unopenable_path(tmp_path):
    store = Store(tmp_path)
    with pytest.raises(StoreUnavailable) as exc_info:
        await store.open()
    assert exc_info.value.code == "STORE_UNAVAILABLE"
    assert not store.is_ready


async def test_null_counters_read_back_as_defaults(store):
    async with store.connection() as conn:
        cursor = await conn.execute(
            "INSERT INTO sessions (start_time, end_time, duration_seconds, \
                model, input_audio_tokens, output_audio_tokens, \
                input_text_tokens, output_text_tokens, total_cost, created_at) \
                VALUES (?, ?, ?, ?, NULL, NULL, NULL, NULL, NULL, NULL)",
            (1_700_000_000_000, 1_700_000_030_000, 30, "m")
        )
        session_id = cursor.lastrowid

    listed = await sessions.list_sessions(store)
    session = await sessions.get_session(store, session_id)

    assert [s.id for s in listed] == [session_id]
    assert session.input_audio_tokens == 0
    assert session.output_text_tokens == 0
    assert session.total_cost == 0.0
    assert session.created_at is None
    stats = await sessions.get_session_stats(store)
    assert stats.total_cost == 0
