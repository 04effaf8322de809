# qr_attendance/schemas/common/error.py
from pydantic import BaseModel
from typing import Any, Dict


class ErrorResponse(BaseModel):
    success: bool = False
    error_code: str
    message: str
    details: Dict[str, Any] = {}
