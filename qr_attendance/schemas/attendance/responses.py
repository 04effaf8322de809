# qr_attendance/schemas/attendance/responses.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class CheckinRecordResponse(BaseModel):
    id: str
    session_id: str
    student_name: str
    student_registration: str
    email: Optional[str]
    recorded_at: datetime

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    id: str
    class_id: str
    created_at: datetime
    expires_at: datetime
    is_active: bool
    code_payload: str
    session_date: str
    session_time: str
    never_expires: bool = False
    status: Optional[str] = None

    class Config:
        from_attributes = True


class ActiveSessionResponse(BaseModel):
    session: SessionResponse
    payload: str
    qr_code: str  # PNG data URL
    checkins: List[CheckinRecordResponse] = []


class RosterEntryResponse(BaseModel):
    student_name: str
    student_registration: str
    present: bool
    recorded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RosterResponse(BaseModel):
    session_id: str
    class_id: str
    present_count: int
    absent_count: int
    entries: List[RosterEntryResponse]

    class Config:
        from_attributes = True


class SessionClosureResponse(BaseModel):
    session: SessionResponse
    roster: RosterResponse


class CheckinFormContext(BaseModel):
    """What the student's check-in page needs before submitting"""
    session_id: str
    class_name: Optional[str]
    status: str
    accepting_checkins: bool
    expires_at: datetime
    never_expires: bool
    message: Optional[str] = None


class CheckinAcceptedResponse(BaseModel):
    success: bool = True
    message: str
    record: CheckinRecordResponse


class SessionHistoryEntryResponse(BaseModel):
    session: SessionResponse
    status: str
    attendance_count: int
    records: List[CheckinRecordResponse]
    qr_code: Optional[str] = None
