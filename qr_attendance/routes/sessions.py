# qr_attendance/routes/sessions.py
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, WebSocket, WebSocketDisconnect, status

from qr_attendance.core.dependencies import (
    get_checkin_validator,
    get_current_teacher,
    get_report_service,
    get_session_manager,
    store_scope,
    teacher_token_valid,
)
from qr_attendance.models import AttendanceSession
from qr_attendance.schemas.attendance import (
    ActiveSessionResponse,
    CheckinRecordResponse,
    ManualCheckinRequest,
    RosterResponse,
    SessionClosureResponse,
    SessionHistoryEntryResponse,
    SessionResponse,
    StartSessionRequest,
)
from qr_attendance.services import (
    NEVER_EXPIRES,
    ActiveSessionView,
    AttendanceReportService,
    CheckinValidator,
    CodePayloadCodec,
    SessionManager,
)
from qr_attendance.services.presence_feed import checkin_event
from qr_attendance.utils.time_utils import is_never_expires

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_teacher)])
feed_router = APIRouter()

# WebSocket close codes
POLICY_VIOLATION = 1008
SESSION_UNKNOWN = 4404


def to_session_response(session: AttendanceSession, manager: SessionManager) -> SessionResponse:
    response = SessionResponse.model_validate(session)
    response.status = manager.session_status(session)
    response.never_expires = is_never_expires(
        session.expires_at, manager.settings["never_expires_after_year"]
    )
    return response


def to_active_response(view: ActiveSessionView, manager: SessionManager) -> ActiveSessionResponse:
    return ActiveSessionResponse(
        session=to_session_response(view.session, manager),
        payload=view.payload,
        qr_code=CodePayloadCodec.to_data_url(view.image),
        checkins=[CheckinRecordResponse.model_validate(c) for c in view.checkins]
    )


@router.post(
    "/classes/{class_id}/sessions",
    response_model=ActiveSessionResponse,
    status_code=status.HTTP_201_CREATED
)
async def start_session(
    class_id: str,
    payload: Optional[StartSessionRequest] = None,
    manager: SessionManager = Depends(get_session_manager)
) -> ActiveSessionResponse:
    """Open a new attendance session, replacing any session still active for the class"""
    payload = payload or StartSessionRequest()
    duration = NEVER_EXPIRES if payload.never_expires else payload.duration_minutes
    view = await manager.start_session(class_id, duration)
    return to_active_response(view, manager)


@router.get(
    "/classes/{class_id}/sessions/active",
    response_model=ActiveSessionResponse,
    responses={204: {"description": "No active session"}}
)
async def resume_active_session(
    class_id: str,
    manager: SessionManager = Depends(get_session_manager)
):
    view = await manager.resume_active_session(class_id)
    if view is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return to_active_response(view, manager)


@router.get("/classes/{class_id}/sessions", response_model=List[SessionHistoryEntryResponse])
async def session_history(
    class_id: str,
    include_qr: bool = Query(default=True),
    manager: SessionManager = Depends(get_session_manager),
    reports: AttendanceReportService = Depends(get_report_service)
) -> List[SessionHistoryEntryResponse]:
    """Sessions of a class, newest first, with their check-ins"""
    history = await reports.session_history(class_id, include_qr=include_qr)
    return [
        SessionHistoryEntryResponse(
            session=to_session_response(entry.session, manager),
            status=entry.status,
            attendance_count=entry.attendance_count,
            records=[CheckinRecordResponse.model_validate(r) for r in entry.records],
            qr_code=entry.qr_data_url
        )
        for entry in history
    ]


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager)
) -> SessionResponse:
    session = await manager.get_session(session_id)
    return to_session_response(session, manager)


@router.post("/sessions/{session_id}/end", response_model=SessionClosureResponse)
async def end_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager)
) -> SessionClosureResponse:
    """End the session; ending it again returns the same closure"""
    closure = await manager.end_session(session_id)
    return SessionClosureResponse(
        session=to_session_response(closure.session, manager),
        roster=RosterResponse.model_validate(closure.roster)
    )


@router.get("/sessions/{session_id}/qr.png", response_class=Response)
async def session_qr_code(
    session_id: str,
    size: Optional[int] = Query(default=None, ge=64, le=1024),
    manager: SessionManager = Depends(get_session_manager)
) -> Response:
    session = await manager.get_session(session_id)
    return Response(content=manager.render_code(session, size=size), media_type="image/png")


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager)
) -> Response:
    await manager.delete_session(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/sessions/{session_id}/checkins", response_model=List[CheckinRecordResponse])
async def list_checkins(
    session_id: str,
    validator: CheckinValidator = Depends(get_checkin_validator)
) -> List[CheckinRecordResponse]:
    records = await validator.list_checkins(session_id)
    return [CheckinRecordResponse.model_validate(r) for r in records]


@router.post(
    "/sessions/{session_id}/checkins",
    response_model=CheckinRecordResponse,
    status_code=status.HTTP_201_CREATED
)
async def add_manual_checkin(
    session_id: str,
    payload: ManualCheckinRequest,
    validator: CheckinValidator = Depends(get_checkin_validator)
) -> CheckinRecordResponse:
    """Teacher correction: add a student to a session after the fact"""
    record = await validator.add_manual_checkin(
        session_id,
        payload.student_name,
        payload.student_registration,
        payload.student_email
    )
    return CheckinRecordResponse.model_validate(record)


@router.delete("/checkins/{checkin_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_checkin(
    checkin_id: str,
    validator: CheckinValidator = Depends(get_checkin_validator)
) -> Response:
    await validator.delete_checkin(checkin_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/sessions/{session_id}/roster", response_model=RosterResponse)
async def session_roster(
    session_id: str,
    reports: AttendanceReportService = Depends(get_report_service)
) -> RosterResponse:
    roster = await reports.session_roster(session_id)
    return RosterResponse.model_validate(roster)


@feed_router.websocket("/sessions/{session_id}/feed")
async def session_feed(websocket: WebSocket, session_id: str):
    """
    Live check-ins for an open teacher view. A "snapshot" message carries the
    check-ins recorded so far and each "checkin" message carries one new
    record. The snapshot is always sent first. A record may appear in both,
    so clients de-duplicate by record id.
    """
    if not teacher_token_valid(websocket):
        await websocket.close(code=POLICY_VIOLATION)
        return

    async with store_scope(websocket.app) as store:
        session = await store.get_session(session_id)
    if session is None:
        await websocket.close(code=SESSION_UNKNOWN)
        return

    await websocket.accept()
    feed = websocket.app.state.feed
    snapshot_sent = asyncio.Event()

    async def forward(event):
        # Live events wait on the subscription's queue until the snapshot is out
        await snapshot_sent.wait()
        await websocket.send_json({"type": "checkin", "record": event})

    # Subscribe before the snapshot so nothing falls between the two
    handle = await feed.subscribe(session_id, forward)
    try:
        async with store_scope(websocket.app) as store:
            records = await store.list_checkins(session_id)
        await websocket.send_json({
            "type": "snapshot",
            "session_id": session_id,
            "checkins": [checkin_event(r) for r in records],
        })
        snapshot_sent.set()
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Presence feed disconnected", extra={"session_id": session_id})
    finally:
        await feed.unsubscribe(handle)
