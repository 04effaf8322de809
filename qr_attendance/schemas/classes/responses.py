# qr_attendance/schemas/classes/responses.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class ClassResponse(BaseModel):
    id: str
    name: str
    code: str
    schedule: str
    description: Optional[str]
    teacher_id: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class StudentStatsResponse(BaseModel):
    student_name: str
    student_registration: str
    attended_sessions: int
    total_sessions: int
    attendance_rate: int

    class Config:
        from_attributes = True


class SessionStatsResponse(BaseModel):
    session_id: str
    session_date: Optional[str]
    session_time: Optional[str]
    is_active: bool
    status: str
    expires_at: datetime
    total_attendees: int

    class Config:
        from_attributes = True


class ClassReportResponse(BaseModel):
    class_id: str
    class_name: str
    class_code: str
    total_sessions: int
    total_records: int
    unique_students: int
    overall_rate: int
    students: List[StudentStatsResponse]
    sessions: List[SessionStatsResponse]

    class Config:
        from_attributes = True
