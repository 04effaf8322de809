# qr_attendance/core/dependencies.py
import secrets
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, status
from starlette.requests import HTTPConnection

from qr_attendance.services import (
    AttendanceReportService,
    CheckinValidator,
    ClassService,
    SessionManager,
)
from qr_attendance.storage import AttendanceStore, SQLAlchemyAttendanceStore

TEACHER_TOKEN_HEADER = "X-Teacher-Token"
TEACHER_ID_HEADER = "X-Teacher-Id"


# Storage
@asynccontextmanager
async def store_scope(app) -> AsyncGenerator[AttendanceStore, None]:
    """
    The process-wide in-memory store, or a SQL store bound to a fresh
    database session that is closed on exit.
    """
    state = app.state
    if state.storage_backend == "memory":
        yield state.memory_store
        return

    async with state.session_factory() as db:
        yield SQLAlchemyAttendanceStore(db)


async def get_store(connection: HTTPConnection) -> AsyncGenerator[AttendanceStore, None]:
    """Provide the attendance store for one request"""
    async with store_scope(connection.app) as store:
        yield store


# Service providers
async def get_session_manager(
    connection: HTTPConnection,
    store: AttendanceStore = Depends(get_store)
) -> SessionManager:
    """Provide SessionManager instance"""
    state = connection.app.state
    return SessionManager(store, state.codec, clock=state.clock)


async def get_checkin_validator(
    connection: HTTPConnection,
    store: AttendanceStore = Depends(get_store)
) -> CheckinValidator:
    """Provide CheckinValidator instance"""
    state = connection.app.state
    return CheckinValidator(store, notifier=state.notifier, feed=state.feed, clock=state.clock)


async def get_class_service(
    connection: HTTPConnection,
    store: AttendanceStore = Depends(get_store)
) -> ClassService:
    return ClassService(store, clock=connection.app.state.clock)


async def get_report_service(
    connection: HTTPConnection,
    store: AttendanceStore = Depends(get_store)
) -> AttendanceReportService:
    state = connection.app.state
    return AttendanceReportService(store, state.codec, clock=state.clock)


# Teacher guard
def teacher_token_valid(connection: HTTPConnection) -> bool:
    """
    Check the shared teacher token. The dashboard's own login sits in front of
    this service; without a configured token every caller is accepted.
    """
    expected = connection.app.state.teacher_token
    if not expected:
        return True
    supplied = connection.headers.get(TEACHER_TOKEN_HEADER) or connection.query_params.get("token") or ""
    return secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


async def get_current_teacher(connection: HTTPConnection) -> Optional[str]:
    """Teacher id forwarded by the dashboard, once the teacher token checks out"""
    if not teacher_token_valid(connection):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="UNAUTHORIZED",
            headers={"WWW-Authenticate": TEACHER_TOKEN_HEADER},
        )
    return connection.headers.get(TEACHER_ID_HEADER) or None
