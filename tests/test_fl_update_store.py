from datetime import timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.core.exceptions import InvalidUpdateError
from app.models.fl_model_update import FLModelUpdate, utcnow
from app.services.fl_update_store import recent_updates, submit

HOUR = timedelta(hours=1)


async def test_submit_assigns_server_timestamp(session, make_update):
    update = make_update()
    update.created_at = utcnow() - timedelta(days=3)
    before = utcnow()

    stored = await submit(session, update)

    assert stored.id is not None
    assert stored.created_at >= before


async def test_duplicates_are_independent_rows(session, make_update):
    await submit(session, make_update(student_id="dup"))
    await submit(session, make_update(student_id="dup"))

    count = (await session.execute(select(func.count()).select_from(FLModelUpdate))).scalar()
    assert count == 2


async def test_recent_updates_newest_first(session, make_update):
    for k in range(3):
        await submit(session, make_update(student_id=f"s{k}"))

    batch = await recent_updates(session, "C1", HOUR, 10)

    assert [u.student_id for u in batch] == ["s2", "s1", "s0"]


async def test_recent_updates_respects_max_count(session, make_update):
    for k in range(5):
        await submit(session, make_update(student_id=f"s{k}"))

    batch = await recent_updates(session, "C1", HOUR, 3)

    assert [u.student_id for u in batch] == ["s4", "s3", "s2"]


async def test_recent_updates_excludes_outside_window(session, make_update):
    stale = make_update(student_id="stale")
    stale.created_at = utcnow() - timedelta(hours=2)
    session.add(stale)
    await session.commit()
    await submit(session, make_update(student_id="fresh"))

    batch = await recent_updates(session, "C1", HOUR, 10)

    assert [u.student_id for u in batch] == ["fresh"]


async def test_recent_updates_isolated_per_course(session, make_update):
    await submit(session, make_update(course_id="C1", student_id="a"))
    await submit(session, make_update(course_id="C2", student_id="b"))

    batch = await recent_updates(session, "C2", HOUR, 10)

    assert [u.student_id for u in batch] == ["b"]


async def test_recent_updates_empty(session):
    assert await recent_updates(session, "nobody", HOUR, 10) == []
    assert await recent_updates(session, "nobody", HOUR, 0) == []


async def test_timestamps_are_utc_aware(session, make_update):
    await submit(session, make_update(student_id="tz"))
    session.expunge_all()

    (stored,) = await recent_updates(session, "C1", HOUR, 10)

    assert stored.created_at.tzinfo is not None
    assert stored.created_at.utcoffset() == timedelta(0)


async def test_naive_timestamps_are_read_as_utc(session, make_update):
    stale = make_update(student_id="naive-stale")
    stale.created_at = (utcnow() - timedelta(hours=2)).replace(tzinfo=None)
    session.add(stale)
    await session.commit()
    await submit(session, make_update(student_id="fresh"))

    batch = await recent_updates(session, "C1", HOUR, 10)

    assert [u.student_id for u in batch] == ["fresh"]
    assert batch[0].created_at.tzinfo == timezone.utc


@pytest.mark.parametrize(
    "overrides",
    [
        {"weights": []},
        {"weights": [[0.1], []]},
        {"biases": []},
    ],
)
async def test_submit_rejects_malformed_update(session, make_update, overrides):
    with pytest.raises(InvalidUpdateError):
        await submit(session, make_update(**overrides))

    count = (await session.execute(select(func.count()).select_from(FLModelUpdate))).scalar()
    assert count == 0
