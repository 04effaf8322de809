from .requests import CheckinSubmitRequest, ManualCheckinRequest, StartSessionRequest
from .responses import (
    CheckinRecordResponse,
    SessionResponse,
    ActiveSessionResponse,
    RosterEntryResponse,
    RosterResponse,
    SessionClosureResponse,
    CheckinFormContext,
    CheckinAcceptedResponse,
    SessionHistoryEntryResponse,
)

__all__ = [
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
]
