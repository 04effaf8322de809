# qr_attendance/services/report_service.py
"""
Read-time projections over recorded check-ins.

A class has no enrolment list of its own: its roster is every distinct
registration that ever checked in to one of its sessions. Presence and
absence are always derived from that roster and never stored.
"""
import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from qr_attendance.core.config import get_session_settings
from qr_attendance.core.exceptions import ClassNotFound, SessionNotFound
from qr_attendance.models import AttendanceSession, CheckinRecord
from qr_attendance.storage import AttendanceStore
from qr_attendance.utils.time_utils import Clock, local_date_time, session_status, utcnow
from .qr_codec import CodePayloadCodec

logger = logging.getLogger(__name__)


@dataclass
class RosterEntry:
    student_name: str
    student_registration: str
    present: bool
    recorded_at: Optional[datetime] = None


@dataclass
class SessionRoster:
    session_id: str
    class_id: str
    entries: List[RosterEntry] = field(default_factory=list)

    @property
    def present_count(self) -> int:
        return sum(1 for entry in self.entries if entry.present)

    @property
    def absent_count(self) -> int:
        return len(self.entries) - self.present_count


@dataclass
class StudentStats:
    student_name: str
    student_registration: str
    attended_sessions: int
    total_sessions: int
    attendance_rate: int


@dataclass
class SessionStats:
    session_id: str
    session_date: Optional[str]
    session_time: Optional[str]
    is_active: bool
    status: str
    expires_at: datetime
    total_attendees: int


@dataclass
class ClassReport:
    class_id: str
    class_name: str
    class_code: str
    total_sessions: int
    total_records: int
    unique_students: int = 0
    overall_rate: int = 0  # mean of the per-student rates
    students: List[StudentStats] = field(default_factory=list)
    sessions: List[SessionStats] = field(default_factory=list)


@dataclass
class SessionHistoryEntry:
    session: AttendanceSession
    status: str
    attendance_count: int
    records: List[CheckinRecord]
    qr_data_url: Optional[str] = None


def attendance_rate(attended: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(round(attended * 100 / total))


CSV_HEADER = ["Nome", "Matrícula", "Total de Aulas", "Presenças", "Taxa de Frequência"]


def report_csv(report: ClassReport) -> str:
    """One row per student, in the report's order"""
    buf = io.StringIO(newline="")
    writer = csv.writer(buf, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_HEADER)
    for s in report.students:
        writer.writerow([
            s.student_name,
            s.student_registration,
            s.total_sessions,
            s.attended_sessions,
            f"{s.attendance_rate}%",
        ])
    return buf.getvalue()


class AttendanceReportService:
    def __init__(
        self,
        store: AttendanceStore,
        codec: Optional[CodePayloadCodec] = None,
        clock: Clock = utcnow,
        never_expires_after_year: Optional[int] = None
    ):
        self.store = store
        self.codec = codec
        self.clock = clock
        self.never_expires_after_year = (
            never_expires_after_year or get_session_settings()["never_expires_after_year"]
        )

    def _status(self, session: AttendanceSession, now: datetime) -> str:
        return session_status(session.is_active, session.expires_at, now, self.never_expires_after_year)

    def export_filename(self, report: ClassReport) -> str:
        """frequencia-<class code>-<local date>.csv"""
        today, _ = local_date_time(self.clock(), get_session_settings()["timezone"])
        code = re.sub(r"[^A-Za-z0-9_-]+", "-", report.class_code).strip("-") or "turma"
        return f"frequencia-{code}-{today}.csv"

    async def _class_roster(self, class_id: str) -> Dict[str, str]:
        """registration -> most recently used name, across every session of the class"""
        sessions = await self.store.list_sessions(class_id)
        records = await self.store.list_checkins_for_sessions([s.id for s in sessions])
        roster: Dict[str, str] = {}
        for record in records:
            roster.setdefault(record.student_registration, record.student_name)
        return roster

    async def session_roster(self, session_id: str) -> SessionRoster:
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFound(details={"session_id": session_id})

        roster = await self._class_roster(session.class_id)
        present = {r.student_registration: r for r in await self.store.list_checkins(session_id)}

        entries = []
        for registration, name in roster.items():
            record = present.get(registration)
            entries.append(RosterEntry(
                student_name=record.student_name if record else name,
                student_registration=registration,
                present=record is not None,
                recorded_at=record.recorded_at if record else None
            ))
        entries.sort(key=lambda e: (not e.present, e.student_name.lower()))
        return SessionRoster(session_id=session.id, class_id=session.class_id, entries=entries)

    async def class_report(self, class_id: str) -> ClassReport:
        class_ = await self.store.get_class(class_id)
        if class_ is None:
            raise ClassNotFound(details={"class_id": class_id})

        now = self.clock()
        sessions = await self.store.list_sessions(class_id)
        records = await self.store.list_checkins_for_sessions([s.id for s in sessions])

        attendees: Dict[str, int] = {}
        attended: Dict[str, set] = {}
        names: Dict[str, str] = {}
        for record in records:
            attendees[record.session_id] = attendees.get(record.session_id, 0) + 1
            attended.setdefault(record.student_registration, set()).add(record.session_id)
            names.setdefault(record.student_registration, record.student_name)

        total_sessions = len(sessions)
        students = [
            StudentStats(
                student_name=names[registration],
                student_registration=registration,
                attended_sessions=len(session_ids),
                total_sessions=total_sessions,
                attendance_rate=attendance_rate(len(session_ids), total_sessions)
            )
            for registration, session_ids in attended.items()
        ]
        students.sort(key=lambda s: (-s.attendance_rate, s.student_name.lower()))

        session_stats = [
            SessionStats(
                session_id=s.id,
                session_date=s.session_date,
                session_time=s.session_time,
                is_active=s.is_active,
                status=self._status(s, now),
                expires_at=s.expires_at,
                total_attendees=attendees.get(s.id, 0)
            )
            for s in sessions
        ]

        overall_rate = 0
        if total_sessions and students:
            overall_rate = int(round(sum(s.attendance_rate for s in students) / len(students)))

        return ClassReport(
            class_id=class_.id,
            class_name=class_.name,
            class_code=class_.code,
            total_sessions=total_sessions,
            total_records=len(records),
            unique_students=len(students),
            overall_rate=overall_rate,
            students=students,
            sessions=session_stats
        )

    async def session_history(self, class_id: str, include_qr: bool = True) -> List[SessionHistoryEntry]:
        """Sessions newest first, each with its records and an optional thumbnail of its code"""
        class_ = await self.store.get_class(class_id)
        if class_ is None:
            raise ClassNotFound(details={"class_id": class_id})

        now = self.clock()
        sessions = await self.store.list_sessions(class_id)
        records = await self.store.list_checkins_for_sessions([s.id for s in sessions])

        by_session: Dict[str, List[CheckinRecord]] = {}
        for record in records:
            by_session.setdefault(record.session_id, []).append(record)

        history = []
        for session in sessions:
            session_records = sorted(by_session.get(session.id, []), key=lambda r: r.recorded_at)
            qr_data_url = None
            if include_qr and self.codec is not None:
                payload = session.code_payload or self.codec.build_payload(session.id)
                qr_data_url = self.codec.to_data_url(
                    self.codec.render(payload, size=self.codec.history_image_size)
                )
            history.append(SessionHistoryEntry(
                session=session,
                status=self._status(session, now),
                attendance_count=len(session_records),
                records=session_records,
                qr_data_url=qr_data_url
            ))
        return history
