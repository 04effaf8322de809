# qr_attendance/storage/memory.py
import asyncio
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from qr_attendance.core.exceptions import UniqueViolation
from qr_attendance.models import Class, AttendanceSession, CheckinRecord
from .base import AttendanceStore


def _clone(row):
    """Detached copy of a row, so callers never mutate stored state"""
    values = {column.key: getattr(row, column.key) for column in row.__table__.columns}
    return type(row)(**values)


class InMemoryAttendanceStore(AttendanceStore):
    """
    Process-local store used when no database is configured and in tests.
    Each class has its own lock for session activation; check-in inserts
    share one lock that guards the (session, registration) index.
    """

    def __init__(self):
        self._classes: Dict[str, Class] = {}
        self._sessions: Dict[str, AttendanceSession] = {}
        self._checkins: Dict[str, CheckinRecord] = {}
        self._registrations: Dict[Tuple[str, str], str] = {}
        self._class_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._checkin_lock = asyncio.Lock()

    # Classes
    async def create_class(self, class_: Class) -> Class:
        self._classes[class_.id] = _clone(class_)
        return _clone(class_)

    async def get_class(self, class_id: str) -> Optional[Class]:
        class_ = self._classes.get(class_id)
        return _clone(class_) if class_ else None

    async def list_classes(self, teacher_id: Optional[str] = None) -> List[Class]:
        classes = [
            c for c in self._classes.values()
            if teacher_id is None or c.teacher_id == teacher_id
        ]
        classes.sort(key=lambda c: c.created_at, reverse=True)
        return [_clone(c) for c in classes]

    async def delete_class(self, class_id: str) -> bool:
        async with self._class_locks[class_id]:
            if class_id not in self._classes:
                return False
            for session_id in [s.id for s in self._sessions.values() if s.class_id == class_id]:
                await self._drop_session(session_id)
            del self._classes[class_id]
        self._class_locks.pop(class_id, None)
        return True

    # Sessions
    async def activate_session(self, session: AttendanceSession) -> AttendanceSession:
        async with self._class_locks[session.class_id]:
            for existing in self._sessions.values():
                if existing.class_id == session.class_id and existing.is_active:
                    existing.is_active = False
            stored = _clone(session)
            stored.is_active = True
            self._sessions[stored.id] = stored
        return _clone(stored)

    async def get_session(self, session_id: str) -> Optional[AttendanceSession]:
        session = self._sessions.get(session_id)
        return _clone(session) if session else None

    async def get_latest_active_session(self, class_id: str) -> Optional[AttendanceSession]:
        active = [
            s for s in self._sessions.values()
            if s.class_id == class_id and s.is_active
        ]
        if not active:
            return None
        return _clone(max(active, key=lambda s: s.created_at))

    async def list_sessions(self, class_id: str) -> List[AttendanceSession]:
        sessions = [s for s in self._sessions.values() if s.class_id == class_id]
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return [_clone(s) for s in sessions]

    async def deactivate_session(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.is_active = False
        return True

    async def delete_session(self, session_id: str) -> bool:
        if session_id not in self._sessions:
            return False
        await self._drop_session(session_id)
        return True

    async def _drop_session(self, session_id: str) -> None:
        async with self._checkin_lock:
            for checkin_id in [c.id for c in self._checkins.values() if c.session_id == session_id]:
                record = self._checkins.pop(checkin_id)
                self._registrations.pop((record.session_id, record.student_registration), None)
        self._sessions.pop(session_id, None)

    # Check-ins
    async def find_checkin(self, session_id: str, student_registration: str) -> Optional[CheckinRecord]:
        checkin_id = self._registrations.get((session_id, student_registration))
        if checkin_id is None:
            return None
        return _clone(self._checkins[checkin_id])

    async def get_checkin(self, checkin_id: str) -> Optional[CheckinRecord]:
        record = self._checkins.get(checkin_id)
        return _clone(record) if record else None

    async def insert_checkin(self, record: CheckinRecord) -> CheckinRecord:
        key = (record.session_id, record.student_registration)
        async with self._checkin_lock:
            if key in self._registrations:
                raise UniqueViolation(
                    f"Registration {record.student_registration} already recorded for session {record.session_id}"
                )
            self._checkins[record.id] = _clone(record)
            self._registrations[key] = record.id
        return _clone(record)

    async def list_checkins(self, session_id: str) -> List[CheckinRecord]:
        records = [c for c in self._checkins.values() if c.session_id == session_id]
        records.sort(key=lambda c: c.recorded_at)
        return [_clone(c) for c in records]

    async def list_checkins_for_sessions(self, session_ids: Iterable[str]) -> List[CheckinRecord]:
        wanted = set(session_ids)
        records = [c for c in self._checkins.values() if c.session_id in wanted]
        records.sort(key=lambda c: c.recorded_at, reverse=True)
        return [_clone(c) for c in records]

    async def delete_checkin(self, checkin_id: str) -> bool:
        async with self._checkin_lock:
            record = self._checkins.pop(checkin_id, None)
            if record is None:
                return False
            self._registrations.pop((record.session_id, record.student_registration), None)
        return True
