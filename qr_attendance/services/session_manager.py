# qr_attendance/services/session_manager.py
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Union

from qr_attendance.core.config import get_session_settings
from qr_attendance.core.exceptions import ClassNotFound, SessionNotFound
from qr_attendance.core.logging import log_function_call
from qr_attendance.models import AttendanceSession, CheckinRecord
from qr_attendance.storage import AttendanceStore
from qr_attendance.utils.time_utils import (
    Clock,
    expiry_for,
    has_expired,
    local_date_time,
    never_expires_at,
    session_status,
    utcnow,
)
from .qr_codec import CodePayloadCodec
from .report_service import AttendanceReportService, SessionRoster

logger = logging.getLogger(__name__)

# Duration value selecting a session that stays open until the teacher ends it
NEVER_EXPIRES = "never-expires"

Duration = Union[int, str, None]


@dataclass
class ActiveSessionView:
    session: AttendanceSession
    payload: str
    image: bytes
    checkins: List[CheckinRecord] = field(default_factory=list)


@dataclass
class SessionClosure:
    session: AttendanceSession
    roster: Optional[SessionRoster]


class SessionManager:
    """Starts, resumes and ends attendance sessions for a class"""

    def __init__(
        self,
        store: AttendanceStore,
        codec: CodePayloadCodec,
        reports: Optional[AttendanceReportService] = None,
        clock: Clock = utcnow,
        session_settings: Optional[dict] = None
    ):
        self.store = store
        self.codec = codec
        self.clock = clock
        self.settings = session_settings or get_session_settings()
        self.reports = reports or AttendanceReportService(
            store, codec, clock, self.settings["never_expires_after_year"]
        )

    def _normalize_duration(self, duration: Duration) -> Optional[int]:
        """Minutes to stay open, or None for a never-expiring session"""
        if duration == NEVER_EXPIRES:
            return None
        if duration is None:
            duration = self.settings["default_minutes"]
        return max(int(duration), self.settings["min_minutes"])

    def _is_expired(self, session: AttendanceSession) -> bool:
        return has_expired(session.expires_at, self.clock(), self.settings["never_expires_after_year"])

    @log_function_call(logger)
    async def start_session(self, class_id: str, duration_minutes: Duration = None) -> ActiveSessionView:
        """
        Open a new session for the class. Any session still active for the
        class is deactivated in the same store operation, so a class never has
        two active sessions.
        """
        class_ = await self.store.get_class(class_id)
        if class_ is None:
            raise ClassNotFound(details={"class_id": class_id})

        minutes = self._normalize_duration(duration_minutes)
        now = self.clock()
        if minutes is None:
            expires_at = never_expires_at(now, self.settings["never_expires_years"])
        else:
            expires_at = expiry_for(now, minutes)

        session_id = str(uuid.uuid4())
        session_date, session_time = local_date_time(now, self.settings.get("timezone", "UTC"))
        session = AttendanceSession(
            id=session_id,
            class_id=class_id,
            created_at=now,
            expires_at=expires_at,
            is_active=True,
            code_payload=self.codec.build_payload(session_id),
            session_date=session_date,
            session_time=session_time
        )
        session = await self.store.activate_session(session)

        logger.info(
            f"Attendance session started for class {class_.name}",
            extra={"session_id": session.id, "class_id": class_id}
        )
        encoded = self.codec.encode(session)
        return ActiveSessionView(session=session, payload=encoded.payload, image=encoded.image)

    async def end_session(self, session_id: str) -> SessionClosure:
        """Deactivate the session; ending an already ended session is a no-op"""
        if not await self.store.deactivate_session(session_id):
            raise SessionNotFound(details={"session_id": session_id})

        session = await self.store.get_session(session_id)
        logger.info("Attendance session ended", extra={"session_id": session_id})

        try:
            roster = await self.reports.session_roster(session_id)
        except Exception as e:
            logger.error(
                f"Failed to build roster for ended session: {str(e)}",
                extra={"session_id": session_id}
            )
            roster = SessionRoster(session_id=session_id, class_id=session.class_id if session else "")
        return SessionClosure(session=session, roster=roster)

    async def resume_active_session(self, class_id: str) -> Optional[ActiveSessionView]:
        """
        The class's most recent active session with its code and the check-ins
        recorded so far. A session found past its expiry is deactivated here
        and None is returned.
        """
        session = await self.store.get_latest_active_session(class_id)
        if session is None:
            return None

        if self._is_expired(session):
            await self.store.deactivate_session(session.id)
            logger.info(
                "Expired session deactivated on resume",
                extra={"session_id": session.id, "class_id": class_id}
            )
            return None

        encoded = self.codec.encode(session)
        checkins = await self.store.list_checkins(session.id)
        return ActiveSessionView(
            session=session,
            payload=encoded.payload,
            image=encoded.image,
            checkins=checkins
        )

    async def get_session(self, session_id: str) -> AttendanceSession:
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFound(details={"session_id": session_id})
        return session

    async def list_sessions(self, class_id: str) -> List[AttendanceSession]:
        if await self.store.get_class(class_id) is None:
            raise ClassNotFound(details={"class_id": class_id})
        return await self.store.list_sessions(class_id)

    async def delete_session(self, session_id: str) -> None:
        if not await self.store.delete_session(session_id):
            raise SessionNotFound(details={"session_id": session_id})
        logger.info("Attendance session deleted", extra={"session_id": session_id})

    def session_status(self, session: AttendanceSession) -> str:
        return session_status(
            session.is_active,
            session.expires_at,
            self.clock(),
            self.settings["never_expires_after_year"]
        )

    def render_code(self, session: AttendanceSession, size: Optional[int] = None) -> bytes:
        payload = session.code_payload or self.codec.build_payload(session.id)
        return self.codec.render(payload, size=size)
