# qr_attendance/storage/sql.py
import logging
from contextlib import asynccontextmanager
from typing import Iterable, List, Optional

from sqlalchemy import and_, delete, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from qr_attendance.core.exceptions import PermissionDenied, PersistenceError, UniqueViolation
from qr_attendance.models import Class, AttendanceSession, CheckinRecord
from .base import AttendanceStore

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
INSUFFICIENT_PRIVILEGE = "42501"


def _sqlstate(error: DBAPIError) -> Optional[str]:
    orig = getattr(error, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


class SQLAlchemyAttendanceStore(AttendanceStore):
    """AttendanceStore over an async SQLAlchemy session; every write commits"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _operation(self, name: str):
        """Roll back and translate driver errors for one store call"""
        try:
            yield
        except IntegrityError as e:
            await self.db.rollback()
            if _sqlstate(e) == UNIQUE_VIOLATION or "unique" in str(e.orig).lower():
                raise UniqueViolation(str(e.orig))
            logger.error(f"Integrity error during {name}: {e.orig}")
            raise PersistenceError(f"Integrity error during {name}")
        except DBAPIError as e:
            await self.db.rollback()
            if _sqlstate(e) == INSUFFICIENT_PRIVILEGE or "policy" in str(e.orig).lower():
                logger.warning(f"Storage policy rejected {name}: {e.orig}")
                raise PermissionDenied()
            logger.error(f"Database error during {name}: {type(e).__name__}", exc_info=True)
            raise PersistenceError(f"Database error during {name}")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error during {name}: {type(e).__name__}", exc_info=True)
            raise PersistenceError(f"Database error during {name}")

    # Classes
    async def create_class(self, class_: Class) -> Class:
        async with self._operation("create_class"):
            self.db.add(class_)
            await self.db.commit()
        return class_

    async def get_class(self, class_id: str) -> Optional[Class]:
        async with self._operation("get_class"):
            result = await self.db.execute(select(Class).where(Class.id == class_id))
            return result.scalar_one_or_none()

    async def list_classes(self, teacher_id: Optional[str] = None) -> List[Class]:
        async with self._operation("list_classes"):
            query = select(Class).order_by(Class.created_at.desc())
            if teacher_id is not None:
                query = query.where(Class.teacher_id == teacher_id)
            result = await self.db.execute(query)
            return list(result.scalars().all())

    async def delete_class(self, class_id: str) -> bool:
        async with self._operation("delete_class"):
            session_ids = select(AttendanceSession.id).where(AttendanceSession.class_id == class_id)
            await self.db.execute(delete(CheckinRecord).where(CheckinRecord.session_id.in_(session_ids)))
            await self.db.execute(delete(AttendanceSession).where(AttendanceSession.class_id == class_id))
            result = await self.db.execute(delete(Class).where(Class.id == class_id))
            await self.db.commit()
            return result.rowcount > 0

    # Sessions
    async def activate_session(self, session: AttendanceSession) -> AttendanceSession:
        async with self._operation("activate_session"):
            # Serialize concurrent starts for the same class
            await self.db.execute(
                select(Class.id).where(Class.id == session.class_id).with_for_update()
            )
            await self.db.execute(
                update(AttendanceSession)
                .where(and_(
                    AttendanceSession.class_id == session.class_id,
                    AttendanceSession.is_active.is_(True)
                ))
                .values(is_active=False)
            )
            session.is_active = True
            self.db.add(session)
            await self.db.commit()
        return session

    async def get_session(self, session_id: str) -> Optional[AttendanceSession]:
        async with self._operation("get_session"):
            result = await self.db.execute(
                select(AttendanceSession)
                .where(AttendanceSession.id == session_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

    async def get_latest_active_session(self, class_id: str) -> Optional[AttendanceSession]:
        async with self._operation("get_latest_active_session"):
            result = await self.db.execute(
                select(AttendanceSession)
                .where(and_(
                    AttendanceSession.class_id == class_id,
                    AttendanceSession.is_active.is_(True)
                ))
                .order_by(AttendanceSession.created_at.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

    async def list_sessions(self, class_id: str) -> List[AttendanceSession]:
        async with self._operation("list_sessions"):
            result = await self.db.execute(
                select(AttendanceSession)
                .where(AttendanceSession.class_id == class_id)
                .order_by(AttendanceSession.created_at.desc())
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())

    async def deactivate_session(self, session_id: str) -> bool:
        async with self._operation("deactivate_session"):
            result = await self.db.execute(
                update(AttendanceSession)
                .where(AttendanceSession.id == session_id)
                .values(is_active=False)
            )
            await self.db.commit()
            return result.rowcount > 0

    async def delete_session(self, session_id: str) -> bool:
        async with self._operation("delete_session"):
            await self.db.execute(delete(CheckinRecord).where(CheckinRecord.session_id == session_id))
            result = await self.db.execute(delete(AttendanceSession).where(AttendanceSession.id == session_id))
            await self.db.commit()
            return result.rowcount > 0

    # Check-ins
    async def find_checkin(self, session_id: str, student_registration: str) -> Optional[CheckinRecord]:
        async with self._operation("find_checkin"):
            result = await self.db.execute(
                select(CheckinRecord).where(and_(
                    CheckinRecord.session_id == session_id,
                    CheckinRecord.student_registration == student_registration
                ))
            )
            return result.scalar_one_or_none()

    async def get_checkin(self, checkin_id: str) -> Optional[CheckinRecord]:
        async with self._operation("get_checkin"):
            result = await self.db.execute(select(CheckinRecord).where(CheckinRecord.id == checkin_id))
            return result.scalar_one_or_none()

    async def insert_checkin(self, record: CheckinRecord) -> CheckinRecord:
        async with self._operation("insert_checkin"):
            self.db.add(record)
            await self.db.commit()
        return record

    async def list_checkins(self, session_id: str) -> List[CheckinRecord]:
        async with self._operation("list_checkins"):
            result = await self.db.execute(
                select(CheckinRecord)
                .where(CheckinRecord.session_id == session_id)
                .order_by(CheckinRecord.recorded_at.asc())
            )
            return list(result.scalars().all())

    async def list_checkins_for_sessions(self, session_ids: Iterable[str]) -> List[CheckinRecord]:
        session_ids = list(session_ids)
        if not session_ids:
            return []
        async with self._operation("list_checkins_for_sessions"):
            result = await self.db.execute(
                select(CheckinRecord)
                .where(CheckinRecord.session_id.in_(session_ids))
                .order_by(CheckinRecord.recorded_at.desc())
            )
            return list(result.scalars().all())

    async def delete_checkin(self, checkin_id: str) -> bool:
        async with self._operation("delete_checkin"):
            result = await self.db.execute(delete(CheckinRecord).where(CheckinRecord.id == checkin_id))
            await self.db.commit()
            return result.rowcount > 0
