# qr_attendance/routes/attendance.py
"""Student-facing endpoints reached by scanning a session's QR code"""
from fastapi import APIRouter, Depends, Request, status

from qr_attendance.core.dependencies import get_checkin_validator, get_session_manager
from qr_attendance.core.errors import request_language, translate_error
from qr_attendance.core.exceptions import SessionClosed, SessionExpired
from qr_attendance.core.i18n import get_translation
from qr_attendance.schemas.attendance import (
    CheckinAcceptedResponse,
    CheckinFormContext,
    CheckinRecordResponse,
    CheckinSubmitRequest,
)
from qr_attendance.services import CheckinValidator, SessionManager
from qr_attendance.utils.time_utils import is_never_expires

router = APIRouter()

STATUS_ERRORS = {
    "ended": SessionClosed,
    "expired": SessionExpired,
}


@router.get("/{session_id}", response_model=CheckinFormContext)
async def get_checkin_form(
    session_id: str,
    request: Request,
    manager: SessionManager = Depends(get_session_manager)
) -> CheckinFormContext:
    """Context for the check-in page: class name and whether the session still accepts check-ins"""
    session = await manager.get_session(session_id)
    class_ = await manager.store.get_class(session.class_id)
    session_status = manager.session_status(session)

    message = None
    if session_status in STATUS_ERRORS:
        message = translate_error(STATUS_ERRORS[session_status](), request_language(request))

    return CheckinFormContext(
        session_id=session.id,
        class_name=class_.name if class_ else None,
        status=session_status,
        accepting_checkins=session_status == "active",
        expires_at=session.expires_at,
        never_expires=is_never_expires(session.expires_at, manager.settings["never_expires_after_year"]),
        message=message
    )


@router.post("/{session_id}", response_model=CheckinAcceptedResponse, status_code=status.HTTP_201_CREATED)
async def submit_checkin(
    session_id: str,
    payload: CheckinSubmitRequest,
    request: Request,
    validator: CheckinValidator = Depends(get_checkin_validator)
) -> CheckinAcceptedResponse:
    """Record the student's attendance; refusals are rendered by the error handlers"""
    outcome = await validator.submit_checkin(
        session_id,
        payload.student_name,
        payload.student_registration,
        payload.student_email
    )
    if not outcome.accepted:
        raise outcome.error

    translate = get_translation(request_language(request))
    return CheckinAcceptedResponse(
        message=translate("CHECKIN_CONFIRMED"),
        record=CheckinRecordResponse.model_validate(outcome.record)
    )
