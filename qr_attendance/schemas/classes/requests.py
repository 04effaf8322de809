# qr_attendance/schemas/classes/requests.py
from pydantic import BaseModel
from typing import Optional


class ClassCreateRequest(BaseModel):
    name: str
    code: str
    schedule: str
    description: Optional[str] = None
