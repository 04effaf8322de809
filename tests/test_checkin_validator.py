# tests/test_checkin_validator.py
import asyncio
from datetime import timedelta

import pytest

from qr_attendance.core.exceptions import (
    CheckinNotFound,
    DuplicateCheckin,
    InvalidInput,
    PermissionDenied,
    PersistenceError,
    SessionClosed,
    SessionExpired,
    SessionNotFound,
)
from qr_attendance.services import CheckinValidator, NEVER_EXPIRES
from tests.conftest import RecordingNotifier


async def test_duplicate_and_closed_scenario(manager, validator, store, class_id, clock):
    first = await manager.start_session(class_id, 10)
    s1 = first.session.id
    assert first.session.expires_at == clock.now + timedelta(minutes=10)

    outcome = await validator.submit_checkin(s1, "Ana", "2024001", "ana@x.com")
    assert outcome.accepted
    r1 = outcome.record

    clock.advance(minutes=2)
    again = await validator.submit_checkin(s1, "Ana", "2024001", "ana@x.com")
    assert not again.accepted
    assert isinstance(again.error, DuplicateCheckin)
    assert again.error.recorded_at == r1.recorded_at

    second = await manager.start_session(class_id, 30)
    assert second.session.id != s1
    assert (await store.get_session(s1)).is_active is False

    closed = await validator.submit_checkin(s1, "Carla", "2024003", "carla@x.com")
    assert isinstance(closed.error, SessionClosed)
    assert closed.error_code == "SESSION_CLOSED"


async def test_never_expires_accepts_after_ten_hours(manager, validator, class_id, clock):
    view = await manager.start_session(class_id, NEVER_EXPIRES)
    assert view.session.expires_at.year > 2100

    clock.advance(hours=10)
    outcome = await validator.submit_checkin(view.session.id, "Ana", "2024001", "ana@x.com")
    assert outcome.accepted


async def test_expired_session_rejects_every_later_submission(manager, validator, class_id, clock):
    view = await manager.start_session(class_id, 10)
    clock.advance(minutes=10, seconds=1)

    for registration in ("2024001", "2024002", "2024003"):
        outcome = await validator.submit_checkin(view.session.id, "Aluno", registration, None)
        assert isinstance(outcome.error, SessionExpired)
        clock.advance(minutes=5)


async def test_unknown_session(validator):
    outcome = await validator.submit_checkin("missing-session", "Ana", "2024001", None)
    assert isinstance(outcome.error, SessionNotFound)


async def test_closed_checked_before_expiry(manager, validator, class_id, clock):
    view = await manager.start_session(class_id, 10)
    await manager.end_session(view.session.id)
    clock.advance(hours=1)

    outcome = await validator.submit_checkin(view.session.id, "Ana", "2024001", None)
    assert isinstance(outcome.error, SessionClosed)


async def test_duplicate_checked_before_email_shape(manager, validator, class_id):
    view = await manager.start_session(class_id, 30)
    await validator.submit_checkin(view.session.id, "Ana", "2024001", "ana@x.com")

    outcome = await validator.submit_checkin(view.session.id, "Ana", "2024001", "not-an-email")
    assert isinstance(outcome.error, DuplicateCheckin)


@pytest.mark.parametrize("name, registration, email, field, key", [
    ("", "2024001", "ana@x.com", "student_name", "MISSING_FIELDS"),
    ("   ", "2024001", None, "student_name", "MISSING_FIELDS"),
    ("Ana", "", "ana@x.com", "student_registration", "MISSING_FIELDS"),
    ("Ana", "2024001", "ana@x", "email", "INVALID_EMAIL"),
    ("Ana", "2024001", "ana x@x.com", "email", "INVALID_EMAIL"),
    ("Ana", "2024001", "@x.com", "email", "INVALID_EMAIL"),
])
async def test_invalid_input(manager, validator, store, class_id, name, registration, email, field, key):
    view = await manager.start_session(class_id, 30)

    outcome = await validator.submit_checkin(view.session.id, name, registration, email)

    assert isinstance(outcome.error, InvalidInput)
    assert outcome.error.field == field
    assert outcome.error.translation_key == key
    assert await store.list_checkins(view.session.id) == []


async def test_fields_are_trimmed_and_email_optional(manager, validator, notifier, class_id):
    view = await manager.start_session(class_id, 30)

    outcome = await validator.submit_checkin(view.session.id, "  Ana Souza ", " 2024001 ", "  ")

    assert outcome.record.student_name == "Ana Souza"
    assert outcome.record.student_registration == "2024001"
    assert outcome.record.email is None
    assert notifier.sent == []


async def test_confirmation_sent_with_class_details(manager, validator, notifier, class_id):
    view = await manager.start_session(class_id, 30)
    await validator.submit_checkin(view.session.id, "Ana", "2024001", "ana@x.com")

    assert notifier.sent == [{
        "student_name": "Ana",
        "student_email": "ana@x.com",
        "student_registration": "2024001",
        "class_name": "Cálculo I",
        "session_date": "2024-03-18",
        "session_time": "11:00",
    }]


async def test_notification_failure_does_not_block_checkin(manager, store, feed, class_id, clock):
    validator = CheckinValidator(store, notifier=RecordingNotifier(fail=True), feed=feed, clock=clock)
    view = await manager.start_session(class_id, 30)

    outcome = await validator.submit_checkin(view.session.id, "Ana", "2024001", "ana@x.com")

    assert outcome.accepted
    assert len(await store.list_checkins(view.session.id)) == 1


async def test_publish_failure_does_not_block_checkin(manager, store, class_id, clock):
    class BrokenFeed:
        async def publish(self, record):
            raise ConnectionError("broker down")

    validator = CheckinValidator(store, feed=BrokenFeed(), clock=clock)
    view = await manager.start_session(class_id, 30)

    outcome = await validator.submit_checkin(view.session.id, "Ana", "2024001", None)
    assert outcome.accepted


async def test_accepted_checkin_published(manager, validator, feed, class_id):
    view = await manager.start_session(class_id, 30)
    received = []
    await feed.subscribe(view.session.id, received.append)

    outcome = await validator.submit_checkin(view.session.id, "Ana", "2024001", None)
    await feed.wait_idle()

    assert [e["id"] for e in received] == [outcome.record.id]


async def test_concurrent_submissions_admit_one(manager, validator, store, class_id):
    view = await manager.start_session(class_id, 30)

    outcomes = await asyncio.gather(*[
        validator.submit_checkin(view.session.id, "Ana", "2024001", None)
        for _ in range(5)
    ])

    accepted = [o for o in outcomes if o.accepted]
    assert len(accepted) == 1
    for outcome in outcomes:
        if not outcome.accepted:
            assert isinstance(outcome.error, DuplicateCheckin)
            assert outcome.error.recorded_at == accepted[0].record.recorded_at
    assert len(await store.list_checkins(view.session.id)) == 1


async def test_policy_rejection_is_an_outcome(manager, store, class_id, clock):
    view = await manager.start_session(class_id, 30)

    async def reject(record):
        raise PermissionDenied()

    store.insert_checkin = reject
    validator = CheckinValidator(store, clock=clock)
    outcome = await validator.submit_checkin(view.session.id, "Ana", "2024001", None)

    assert isinstance(outcome.error, PermissionDenied)


async def test_persistence_error_propagates(manager, store, class_id, clock):
    view = await manager.start_session(class_id, 30)

    async def fail(record):
        raise PersistenceError()

    store.insert_checkin = fail
    validator = CheckinValidator(store, clock=clock)
    with pytest.raises(PersistenceError):
        await validator.submit_checkin(view.session.id, "Ana", "2024001", None)


async def test_manual_checkin_on_ended_session(manager, validator, feed, class_id):
    view = await manager.start_session(class_id, 10)
    await manager.end_session(view.session.id)
    received = []
    await feed.subscribe(view.session.id, received.append)

    record = await validator.add_manual_checkin(view.session.id, "Bruno", "2024002", "")
    await feed.wait_idle()

    assert record.student_registration == "2024002"
    assert [e["id"] for e in received] == [record.id]

    with pytest.raises(DuplicateCheckin):
        await validator.add_manual_checkin(view.session.id, "Bruno", "2024002")
    with pytest.raises(InvalidInput):
        await validator.add_manual_checkin(view.session.id, "", "2024003")
    with pytest.raises(SessionNotFound):
        await validator.add_manual_checkin("missing-session", "Bruno", "2024002")


async def test_delete_checkin_allows_new_submission(manager, validator, class_id):
    view = await manager.start_session(class_id, 30)
    outcome = await validator.submit_checkin(view.session.id, "Ana", "2024001", None)

    await validator.delete_checkin(outcome.record.id)
    assert await validator.list_checkins(view.session.id) == []

    again = await validator.submit_checkin(view.session.id, "Ana", "2024001", None)
    assert again.accepted

    with pytest.raises(CheckinNotFound):
        await validator.delete_checkin(outcome.record.id)
