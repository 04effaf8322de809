# qr_attendance/core/exceptions.py
from datetime import datetime
from typing import Any, Dict, Optional


class AttendanceError(Exception):
    """Base exception class for the attendance protocol"""
    status_code = 400
    error_code = "ATTENDANCE_ERROR"
    default_message = "Attendance error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        self.translation_key = self.error_code
        super().__init__(self.message)


class NotFound(AttendanceError):
    """Raised when a class, session or check-in does not exist"""
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Resource not found"


class ClassNotFound(NotFound):
    error_code = "CLASS_NOT_FOUND"
    default_message = "Class not found"


class SessionNotFound(NotFound):
    error_code = "SESSION_NOT_FOUND"
    default_message = "Attendance session not found"


class CheckinNotFound(NotFound):
    error_code = "CHECKIN_NOT_FOUND"
    default_message = "Check-in record not found"


class SessionClosed(AttendanceError):
    """Raised when the teacher has already ended the session"""
    status_code = 409
    error_code = "SESSION_CLOSED"
    default_message = "Attendance session was ended by the teacher"


class SessionExpired(AttendanceError):
    """Raised when the session's expiry time has passed"""
    status_code = 410
    error_code = "SESSION_EXPIRED"
    default_message = "Attendance session has expired"


class DuplicateCheckin(AttendanceError):
    """Raised when a registration already checked in to the session"""
    status_code = 409
    error_code = "DUPLICATE_CHECKIN"
    default_message = "Attendance already recorded for this registration"

    def __init__(
        self,
        student_registration: str,
        recorded_at: Optional[datetime],
        message: Optional[str] = None
    ):
        self.student_registration = student_registration
        self.recorded_at = recorded_at
        super().__init__(
            message=message,
            details={
                "student_registration": student_registration,
                "recorded_at": recorded_at.isoformat() if recorded_at else None,
            }
        )


class InvalidInput(AttendanceError):
    """Raised when submitted fields are missing or malformed"""
    status_code = 422
    error_code = "INVALID_INPUT"
    default_message = "Invalid input"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        translation_key: str = "MISSING_FIELDS"
    ):
        self.field = field
        super().__init__(message=message, details={"field": field} if field else None)
        self.translation_key = translation_key


class PermissionDenied(AttendanceError):
    """Raised when the storage layer rejects a write by policy"""
    status_code = 403
    error_code = "PERMISSION_DENIED"
    default_message = "Invalid or expired session"


class PersistenceError(AttendanceError):
    """Raised when a storage call fails"""
    status_code = 503
    error_code = "PERSISTENCE_ERROR"
    default_message = "Storage operation failed"


class UniqueViolation(Exception):
    """Raised by stores when an insert hits a uniqueness constraint"""
    def __init__(self, message: str = "Unique constraint violated"):
        self.message = message
        super().__init__(self.message)
