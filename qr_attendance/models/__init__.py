from .base import Base, UTCDateTime, generate_uuid
from .class_ import Class
from .attendance_session import AttendanceSession
from .checkin import CheckinRecord

__all__ = [
    'Base',
    'UTCDateTime',
    'generate_uuid',
    'Class',
    'AttendanceSession',
    'CheckinRecord'
]
