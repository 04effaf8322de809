# qr_attendance/storage/base.py
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from qr_attendance.models import Class, AttendanceSession, CheckinRecord


class AttendanceStore(ABC):
    """
    Storage interface for classes, attendance sessions and check-in records.

    Implementations hold no business rules. Two guarantees are theirs alone:
    `activate_session` deactivates the class's active sessions and inserts the
    new one as a single unit, and `insert_checkin` rejects a second record for
    the same (session_id, student_registration) by raising UniqueViolation.
    Driver failures surface as PersistenceError, policy rejections as
    PermissionDenied.
    """

    # Classes
    @abstractmethod
    async def create_class(self, class_: Class) -> Class: ...

    @abstractmethod
    async def get_class(self, class_id: str) -> Optional[Class]: ...

    @abstractmethod
    async def list_classes(self, teacher_id: Optional[str] = None) -> List[Class]: ...

    @abstractmethod
    async def delete_class(self, class_id: str) -> bool:
        """Delete a class with its sessions and their check-ins"""

    # Sessions
    @abstractmethod
    async def activate_session(self, session: AttendanceSession) -> AttendanceSession:
        """Deactivate every active session of session.class_id, then insert session"""

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[AttendanceSession]: ...

    @abstractmethod
    async def get_latest_active_session(self, class_id: str) -> Optional[AttendanceSession]: ...

    @abstractmethod
    async def list_sessions(self, class_id: str) -> List[AttendanceSession]:
        """Sessions of a class, newest first"""

    @abstractmethod
    async def deactivate_session(self, session_id: str) -> bool:
        """Set is_active to false; returns False when the session does not exist"""

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool: ...

    # Check-ins
    @abstractmethod
    async def find_checkin(self, session_id: str, student_registration: str) -> Optional[CheckinRecord]: ...

    @abstractmethod
    async def get_checkin(self, checkin_id: str) -> Optional[CheckinRecord]: ...

    @abstractmethod
    async def insert_checkin(self, record: CheckinRecord) -> CheckinRecord: ...

    @abstractmethod
    async def list_checkins(self, session_id: str) -> List[CheckinRecord]:
        """Check-ins of a session ordered by recorded_at"""

    @abstractmethod
    async def list_checkins_for_sessions(self, session_ids: Iterable[str]) -> List[CheckinRecord]: ...

    @abstractmethod
    async def delete_checkin(self, checkin_id: str) -> bool: ...
