# qr_attendance/schemas/__init__.py

# Import common schemas
from .common.error import ErrorResponse

# Import attendance schemas
from .attendance.requests import (
    CheckinSubmitRequest,
    ManualCheckinRequest,
    StartSessionRequest
)
from .attendance.responses import (
    CheckinRecordResponse,
    SessionResponse,
    ActiveSessionResponse,
    RosterEntryResponse,
    RosterResponse,
    SessionClosureResponse,
    CheckinFormContext,
    CheckinAcceptedResponse,
    SessionHistoryEntryResponse
)

# Import class schemas
from .classes.requests import ClassCreateRequest
from .classes.responses import (
    ClassResponse,
    ClassReportResponse,
    StudentStatsResponse,
    SessionStatsResponse
)

__all__ = [
    'ErrorResponse',
    'CheckinSubmitRequest',
    'ManualCheckinRequest',
    'StartSessionRequest',
    'CheckinRecordResponse',
    'SessionResponse',
    'ActiveSessionResponse',
    'RosterEntryResponse',
    'RosterResponse',
    'SessionClosureResponse',
    'CheckinFormContext',
    'CheckinAcceptedResponse',
    'SessionHistoryEntryResponse',
    'ClassCreateRequest',
    'ClassResponse',
    'ClassReportResponse',
    'StudentStatsResponse',
    'SessionStatsResponse',
]
