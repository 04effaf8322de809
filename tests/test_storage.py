# tests/test_storage.py
from datetime import datetime, timedelta, timezone

import pytest

from qr_attendance.core.exceptions import UniqueViolation
from qr_attendance.models import AttendanceSession, CheckinRecord, Class

NOW = datetime(2024, 3, 18, 11, 0, tzinfo=timezone.utc)


def make_class(class_id="c1", teacher_id="prof-1", created_at=NOW):
    return Class(
        id=class_id,
        name=f"Turma {class_id}",
        code=class_id.upper(),
        schedule="Seg 08:00",
        teacher_id=teacher_id,
        created_at=created_at
    )


def make_session(session_id, class_id="c1", created_at=NOW):
    return AttendanceSession(
        id=session_id,
        class_id=class_id,
        created_at=created_at,
        expires_at=created_at + timedelta(minutes=30),
        is_active=True,
        code_payload=f"https://chamada.example.com/attendance/{session_id}",
        session_date="2024-03-18",
        session_time="11:00"
    )


def make_checkin(checkin_id, session_id, registration, recorded_at=NOW):
    return CheckinRecord(
        id=checkin_id,
        session_id=session_id,
        student_name=f"Aluno {registration}",
        student_registration=registration,
        email=None,
        recorded_at=recorded_at
    )


async def test_activate_deactivates_previous(any_store):
    await any_store.create_class(make_class())
    await any_store.create_class(make_class("c2"))
    await any_store.activate_session(make_session("other", class_id="c2"))

    for i in range(3):
        await any_store.activate_session(make_session(f"s{i}", created_at=NOW + timedelta(minutes=i)))
        active = [s for s in await any_store.list_sessions("c1") if s.is_active]
        assert [s.id for s in active] == [f"s{i}"]

    assert (await any_store.get_session("other")).is_active is True
    assert (await any_store.get_latest_active_session("c1")).id == "s2"


async def test_sessions_listed_newest_first(any_store):
    await any_store.create_class(make_class())
    for i in range(3):
        await any_store.activate_session(make_session(f"s{i}", created_at=NOW + timedelta(minutes=i)))

    assert [s.id for s in await any_store.list_sessions("c1")] == ["s2", "s1", "s0"]


async def test_deactivate_session(any_store):
    await any_store.create_class(make_class())
    await any_store.activate_session(make_session("s1"))

    assert await any_store.deactivate_session("s1") is True
    assert await any_store.deactivate_session("s1") is True
    assert (await any_store.get_session("s1")).is_active is False
    assert await any_store.get_latest_active_session("c1") is None
    assert await any_store.deactivate_session("missing") is False


async def test_unique_registration_per_session(any_store):
    await any_store.create_class(make_class())
    await any_store.activate_session(make_session("s1"))
    await any_store.insert_checkin(make_checkin("r1", "s1", "2024001"))

    with pytest.raises(UniqueViolation):
        await any_store.insert_checkin(make_checkin("r2", "s1", "2024001"))

    found = await any_store.find_checkin("s1", "2024001")
    assert found.id == "r1"
    assert len(await any_store.list_checkins("s1")) == 1


async def test_timestamps_come_back_timezone_aware(any_store):
    await any_store.create_class(make_class())
    await any_store.activate_session(make_session("s1"))
    await any_store.insert_checkin(make_checkin("r1", "s1", "2024001"))

    session = await any_store.get_session("s1")
    record = await any_store.get_checkin("r1")
    assert session.expires_at.tzinfo is not None
    assert record.recorded_at == NOW


async def test_checkins_ordering(any_store):
    await any_store.create_class(make_class())
    await any_store.activate_session(make_session("s1"))
    await any_store.insert_checkin(make_checkin("late", "s1", "002", NOW + timedelta(minutes=5)))
    await any_store.insert_checkin(make_checkin("early", "s1", "001", NOW + timedelta(minutes=1)))

    assert [c.id for c in await any_store.list_checkins("s1")] == ["early", "late"]
    assert [c.id for c in await any_store.list_checkins_for_sessions(["s1"])] == ["late", "early"]
    assert await any_store.list_checkins_for_sessions([]) == []


async def test_delete_class_cascades(any_store):
    await any_store.create_class(make_class())
    await any_store.activate_session(make_session("s1"))
    await any_store.insert_checkin(make_checkin("r1", "s1", "2024001"))

    assert await any_store.delete_class("c1") is True
    assert await any_store.get_class("c1") is None
    assert await any_store.get_session("s1") is None
    assert await any_store.get_checkin("r1") is None
    assert await any_store.delete_class("c1") is False


async def test_delete_session_and_checkin(any_store):
    await any_store.create_class(make_class())
    await any_store.activate_session(make_session("s1"))
    await any_store.insert_checkin(make_checkin("r1", "s1", "2024001"))
    await any_store.insert_checkin(make_checkin("r2", "s1", "2024002"))

    assert await any_store.delete_checkin("r1") is True
    assert await any_store.delete_checkin("r1") is False
    assert await any_store.find_checkin("s1", "2024001") is None

    assert await any_store.delete_session("s1") is True
    assert await any_store.get_checkin("r2") is None
    assert await any_store.delete_session("s1") is False


async def test_list_classes_filters_by_teacher(any_store):
    await any_store.create_class(make_class("c1", "prof-1", NOW))
    await any_store.create_class(make_class("c2", "prof-2", NOW + timedelta(minutes=1)))
    await any_store.create_class(make_class("c3", "prof-1", NOW + timedelta(minutes=2)))

    assert [c.id for c in await any_store.list_classes("prof-1")] == ["c3", "c1"]
    assert [c.id for c in await any_store.list_classes()] == ["c3", "c2", "c1"]


async def test_memory_store_returns_copies(store):
    await store.create_class(make_class())
    await store.activate_session(make_session("s1"))

    session = await store.get_session("s1")
    session.is_active = False

    assert (await store.get_session("s1")).is_active is True
