# qr_attendance/schemas/attendance/requests.py
from pydantic import BaseModel, Field, validator
from typing import Optional


class CheckinSubmitRequest(BaseModel):
    # Left optional so blank forms reach the validator and get its message
    student_name: Optional[str] = None
    student_registration: Optional[str] = None
    student_email: Optional[str] = None


class ManualCheckinRequest(BaseModel):
    student_name: Optional[str] = None
    student_registration: Optional[str] = None
    student_email: Optional[str] = None


class StartSessionRequest(BaseModel):
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    never_expires: bool = False

    @validator('duration_minutes')
    def validate_duration(cls, v):
        if v is not None and v > 60 * 24 * 365:
            raise ValueError("duration_minutes is too large")
        return v
