# qr_attendance/services/class_service.py
import logging
import uuid
from typing import List, Optional

from qr_attendance.core.exceptions import ClassNotFound, InvalidInput
from qr_attendance.models import Class
from qr_attendance.storage import AttendanceStore
from qr_attendance.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)

MAX_CLASS_NAME_LENGTH = 120
MAX_CLASS_CODE_LENGTH = 32
MAX_SCHEDULE_LENGTH = 120


def _required_text(value: Optional[str], field: str, max_length: int) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidInput(f"Class {field} is required", field=field)
    if len(value) > max_length:
        raise InvalidInput(
            f"Class {field} must be at most {max_length} characters",
            field=field,
            translation_key="INVALID_INPUT"
        )
    return value


class ClassService:
    def __init__(self, store: AttendanceStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    async def create_class(
        self,
        name: str,
        code: str,
        schedule: str,
        description: Optional[str] = None,
        teacher_id: Optional[str] = None
    ) -> Class:
        """
        Create a class. Name, code and schedule are trimmed and required;
        the name may be at most 120 characters.
        """
        class_ = Class(
            id=str(uuid.uuid4()),
            name=_required_text(name, "name", MAX_CLASS_NAME_LENGTH),
            code=_required_text(code, "code", MAX_CLASS_CODE_LENGTH),
            schedule=_required_text(schedule, "schedule", MAX_SCHEDULE_LENGTH),
            description=(description or "").strip() or None,
            teacher_id=teacher_id,
            created_at=self.clock()
        )
        class_ = await self.store.create_class(class_)
        logger.info(f"Class created: {class_.name} ({class_.code})", extra={"class_id": class_.id})
        return class_

    async def get_class(self, class_id: str) -> Class:
        class_ = await self.store.get_class(class_id)
        if class_ is None:
            raise ClassNotFound(details={"class_id": class_id})
        return class_

    async def list_classes(self, teacher_id: Optional[str] = None) -> List[Class]:
        return await self.store.list_classes(teacher_id)

    async def delete_class(self, class_id: str) -> None:
        """Delete a class together with its sessions and their check-ins"""
        if not await self.store.delete_class(class_id):
            raise ClassNotFound(details={"class_id": class_id})
        logger.info("Class deleted", extra={"class_id": class_id})
