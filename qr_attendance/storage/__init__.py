from .base import AttendanceStore
from .memory import InMemoryAttendanceStore
from .sql import SQLAlchemyAttendanceStore

__all__ = [
    'AttendanceStore',
    'InMemoryAttendanceStore',
    'SQLAlchemyAttendanceStore'
]
