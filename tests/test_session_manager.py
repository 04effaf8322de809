# tests/test_session_manager.py
from datetime import timedelta

import pytest

from qr_attendance.core.exceptions import ClassNotFound, SessionNotFound
from qr_attendance.services import NEVER_EXPIRES
from tests.conftest import ORIGIN


async def active_sessions(store, class_id):
    return [s for s in await store.list_sessions(class_id) if s.is_active]


async def test_start_session_sets_expiry_and_payload(manager, class_id, clock):
    view = await manager.start_session(class_id, 10)

    assert view.session.is_active is True
    assert view.session.expires_at == clock.now + timedelta(minutes=10)
    assert view.payload == f"{ORIGIN}/attendance/{view.session.id}"
    assert view.session.code_payload == view.payload
    assert view.image.startswith(b"\x89PNG")
    assert view.session.session_date == "2024-03-18"
    assert view.session.session_time == "11:00"


@pytest.mark.parametrize("requested, expected", [(1, 10), (9, 10), (10, 10), (45, 45)])
async def test_duration_clamped_to_minimum(manager, class_id, clock, requested, expected):
    view = await manager.start_session(class_id, requested)
    assert view.session.expires_at - clock.now == timedelta(minutes=expected)


async def test_default_duration(manager, class_id, clock):
    view = await manager.start_session(class_id)
    assert view.session.expires_at - clock.now == timedelta(minutes=30)


async def test_start_session_unknown_class(manager):
    with pytest.raises(ClassNotFound):
        await manager.start_session("missing-class", 10)


async def test_at_most_one_active_session(manager, store, class_id, clock):
    started = []
    for minutes in (10, 30, NEVER_EXPIRES, 15):
        view = await manager.start_session(class_id, minutes)
        started.append(view.session.id)
        clock.advance(minutes=1)

        active = await active_sessions(store, class_id)
        assert [s.id for s in active] == [view.session.id]

    for old_id in started[:-1]:
        assert (await store.get_session(old_id)).is_active is False


async def test_start_session_leaves_other_classes_alone(manager, class_service, store, class_id):
    other = await class_service.create_class("Física II", "FIS201", "Ter 10:00")
    other_view = await manager.start_session(other.id, 10)
    await manager.start_session(class_id, 10)

    assert (await store.get_session(other_view.session.id)).is_active is True


async def test_never_expires_sentinel(manager, class_id, clock):
    view = await manager.start_session(class_id, NEVER_EXPIRES)
    assert view.session.expires_at.year > 2100

    clock.advance(days=400)
    resumed = await manager.resume_active_session(class_id)
    assert resumed is not None
    assert resumed.session.id == view.session.id
    assert manager.session_status(resumed.session) == "active"


async def test_resume_returns_same_code(manager, class_id):
    view = await manager.start_session(class_id, 30)
    resumed = await manager.resume_active_session(class_id)

    assert resumed.session.id == view.session.id
    assert resumed.payload == view.payload
    assert resumed.image == view.image


async def test_resume_includes_checkins_so_far(manager, validator, class_id):
    view = await manager.start_session(class_id, 30)
    await validator.submit_checkin(view.session.id, "Ana", "2024001", "ana@x.com")
    await validator.submit_checkin(view.session.id, "Bruno", "2024002", None)

    resumed = await manager.resume_active_session(class_id)
    assert [c.student_registration for c in resumed.checkins] == ["2024001", "2024002"]


async def test_resume_without_session(manager, class_id):
    assert await manager.resume_active_session(class_id) is None


async def test_resume_deactivates_expired_session(manager, store, class_id, clock):
    view = await manager.start_session(class_id, 10)
    clock.advance(minutes=10, seconds=1)

    assert await manager.resume_active_session(class_id) is None
    assert (await store.get_session(view.session.id)).is_active is False
    assert await manager.resume_active_session(class_id) is None


async def test_session_not_expired_at_exact_expiry(manager, class_id, clock):
    await manager.start_session(class_id, 10)
    clock.advance(minutes=10)
    assert await manager.resume_active_session(class_id) is not None


async def test_end_session_is_idempotent(manager, store, class_id):
    view = await manager.start_session(class_id, 30)

    first = await manager.end_session(view.session.id)
    state_after_first = await store.get_session(view.session.id)
    second = await manager.end_session(view.session.id)
    state_after_second = await store.get_session(view.session.id)

    assert first.session.is_active is False
    assert second.session.is_active is False
    assert state_after_first.is_active == state_after_second.is_active
    assert state_after_first.expires_at == state_after_second.expires_at
    assert await manager.resume_active_session(class_id) is None


async def test_end_session_unknown(manager):
    with pytest.raises(SessionNotFound):
        await manager.end_session("missing-session")


async def test_end_session_builds_roster(manager, validator, class_id):
    first = await manager.start_session(class_id, 30)
    await validator.submit_checkin(first.session.id, "Ana", "2024001", None)
    await validator.submit_checkin(first.session.id, "Bruno", "2024002", None)
    await manager.end_session(first.session.id)

    second = await manager.start_session(class_id, 30)
    await validator.submit_checkin(second.session.id, "Bruno", "2024002", None)
    closure = await manager.end_session(second.session.id)

    entries = {e.student_registration: e.present for e in closure.roster.entries}
    assert entries == {"2024001": False, "2024002": True}
    assert closure.roster.present_count == 1
    assert closure.roster.absent_count == 1


async def test_end_session_roster_failure_yields_empty_projection(manager, class_id):
    view = await manager.start_session(class_id, 30)

    async def broken_roster(session_id):
        raise RuntimeError("projection failed")

    manager.reports.session_roster = broken_roster
    closure = await manager.end_session(view.session.id)

    assert closure.session.is_active is False
    assert closure.roster.entries == []


async def test_session_status_labels(manager, class_id, clock):
    view = await manager.start_session(class_id, 10)
    assert manager.session_status(view.session) == "active"

    clock.advance(minutes=11)
    assert manager.session_status(view.session) == "expired"

    closure = await manager.end_session(view.session.id)
    assert manager.session_status(closure.session) == "ended"


async def test_list_and_delete_sessions(manager, validator, store, class_id, clock):
    first = await manager.start_session(class_id, 10)
    await validator.submit_checkin(first.session.id, "Ana", "2024001", None)
    clock.advance(minutes=1)
    second = await manager.start_session(class_id, 10)

    sessions = await manager.list_sessions(class_id)
    assert [s.id for s in sessions] == [second.session.id, first.session.id]

    await manager.delete_session(first.session.id)
    assert await store.get_session(first.session.id) is None
    assert await store.list_checkins(first.session.id) == []

    with pytest.raises(SessionNotFound):
        await manager.delete_session(first.session.id)


async def test_list_sessions_unknown_class(manager):
    with pytest.raises(ClassNotFound):
        await manager.list_sessions("missing-class")
