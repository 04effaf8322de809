# qr_attendance/services/checkin_service.py
import logging
import re
import uuid
from dataclasses import dataclass
from typing import List, Optional

from qr_attendance.core.config import get_session_settings
from qr_attendance.core.exceptions import (
    AttendanceError,
    CheckinNotFound,
    DuplicateCheckin,
    InvalidInput,
    PersistenceError,
    SessionClosed,
    SessionExpired,
    SessionNotFound,
    UniqueViolation,
)
from qr_attendance.models import AttendanceSession, CheckinRecord
from qr_attendance.storage import AttendanceStore
from qr_attendance.utils.time_utils import Clock, has_expired, utcnow
from .notification_service import Notifier
from .presence_feed import PresenceFeed

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


@dataclass
class CheckinOutcome:
    """Result of a student's submission: the stored record, or the reason it was refused"""
    record: Optional[CheckinRecord] = None
    error: Optional[AttendanceError] = None

    @property
    def accepted(self) -> bool:
        return self.record is not None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.error_code if self.error else None


@dataclass
class CheckinForm:
    student_name: str
    student_registration: str
    email: Optional[str]


def clean_form(student_name: Optional[str], student_registration: Optional[str], student_email: Optional[str]) -> CheckinForm:
    """Trim the submitted fields; name and registration are required, email must look like one"""
    name = (student_name or "").strip()
    registration = (student_registration or "").strip()
    email = (student_email or "").strip() or None

    if not name:
        raise InvalidInput("Student name is required", field="student_name")
    if not registration:
        raise InvalidInput("Student registration is required", field="student_registration")
    if email is not None and not EMAIL_PATTERN.match(email):
        raise InvalidInput("Invalid email address", field="email", translation_key="INVALID_EMAIL")
    return CheckinForm(student_name=name, student_registration=registration, email=email)


class CheckinValidator:
    """Admits or refuses check-ins against a session, at most once per registration"""

    def __init__(
        self,
        store: AttendanceStore,
        notifier: Optional[Notifier] = None,
        feed: Optional[PresenceFeed] = None,
        clock: Clock = utcnow,
        never_expires_after_year: Optional[int] = None
    ):
        self.store = store
        self.notifier = notifier
        self.feed = feed
        self.clock = clock
        self.never_expires_after_year = (
            never_expires_after_year or get_session_settings()["never_expires_after_year"]
        )

    async def submit_checkin(
        self,
        session_id: str,
        student_name: Optional[str],
        student_registration: Optional[str],
        student_email: Optional[str] = None
    ) -> CheckinOutcome:
        """
        Run the admission checks in order (session exists, still active, not
        expired, registration not yet recorded, fields valid), then store the
        record, send the confirmation and publish it to the presence feed.
        Refusals come back as an outcome; storage failures are raised.
        """
        try:
            session, record = await self._admit(session_id, student_name, student_registration, student_email)
        except PersistenceError:
            raise
        except AttendanceError as e:
            logger.info(
                f"Check-in refused: {e.error_code}",
                extra={"session_id": session_id, "error_code": e.error_code}
            )
            return CheckinOutcome(error=e)

        logger.info(
            "Check-in recorded",
            extra={"session_id": session_id, "checkin_id": record.id}
        )
        await self._confirm(session, record)
        await self._publish(record)
        return CheckinOutcome(record=record)

    async def _admit(self, session_id, student_name, student_registration, student_email):
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFound(details={"session_id": session_id})
        if not session.is_active:
            raise SessionClosed()
        if has_expired(session.expires_at, self.clock(), self.never_expires_after_year):
            raise SessionExpired()

        registration = (student_registration or "").strip()
        if registration:
            existing = await self.store.find_checkin(session_id, registration)
            if existing is not None:
                raise DuplicateCheckin(registration, existing.recorded_at)

        form = clean_form(student_name, student_registration, student_email)
        record = await self._insert(session_id, form)
        return session, record

    async def _insert(self, session_id: str, form: CheckinForm) -> CheckinRecord:
        record = CheckinRecord(
            id=str(uuid.uuid4()),
            session_id=session_id,
            student_name=form.student_name,
            student_registration=form.student_registration,
            email=form.email,
            recorded_at=self.clock()
        )
        try:
            return await self.store.insert_checkin(record)
        except UniqueViolation:
            # Lost a race against a concurrent submission for the same registration
            winner = await self.store.find_checkin(session_id, form.student_registration)
            raise DuplicateCheckin(
                form.student_registration,
                winner.recorded_at if winner else None
            )

    async def _confirm(self, session: AttendanceSession, record: CheckinRecord) -> None:
        if self.notifier is None or not record.email:
            return
        try:
            class_ = await self.store.get_class(session.class_id)
            if class_ is None or not class_.name or not session.session_date or not session.session_time:
                return
            await self.notifier.send_confirmation(
                student_name=record.student_name,
                student_email=record.email,
                student_registration=record.student_registration,
                class_name=class_.name,
                session_date=session.session_date,
                session_time=session.session_time
            )
        except Exception as e:
            logger.warning(
                f"Confirmation not sent: {type(e).__name__}: {str(e)}",
                extra={"session_id": session.id, "checkin_id": record.id}
            )

    async def _publish(self, record: CheckinRecord) -> None:
        if self.feed is None:
            return
        try:
            await self.feed.publish(record)
        except Exception as e:
            logger.warning(
                f"Presence update not published: {type(e).__name__}: {str(e)}",
                extra={"session_id": record.session_id, "checkin_id": record.id}
            )

    async def add_manual_checkin(
        self,
        session_id: str,
        student_name: Optional[str],
        student_registration: Optional[str],
        student_email: Optional[str] = None
    ) -> CheckinRecord:
        """Teacher correction: record a student on any existing session, open or not"""
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFound(details={"session_id": session_id})

        form = clean_form(student_name, student_registration, student_email)
        existing = await self.store.find_checkin(session_id, form.student_registration)
        if existing is not None:
            raise DuplicateCheckin(form.student_registration, existing.recorded_at)

        record = await self._insert(session_id, form)
        logger.info(
            "Manual check-in added",
            extra={"session_id": session_id, "checkin_id": record.id}
        )
        await self._publish(record)
        return record

    async def delete_checkin(self, checkin_id: str) -> None:
        record = await self.store.get_checkin(checkin_id)
        if record is None or not await self.store.delete_checkin(checkin_id):
            raise CheckinNotFound(details={"checkin_id": checkin_id})
        logger.info(
            "Check-in deleted",
            extra={"session_id": record.session_id, "checkin_id": checkin_id}
        )

    async def list_checkins(self, session_id: str) -> List[CheckinRecord]:
        if await self.store.get_session(session_id) is None:
            raise SessionNotFound(details={"session_id": session_id})
        return await self.store.list_checkins(session_id)
