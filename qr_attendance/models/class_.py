from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship
from .base import Base, UTCDateTime, generate_uuid


class Class(Base):
    """A named group of students taught by one teacher"""
    __tablename__ = "classes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(120), nullable=False)
    code = Column(String(32), nullable=False)  # e.g. "MAT301A", used in export file names
    schedule = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    teacher_id = Column(String(64), nullable=True, index=True)
    created_at = Column(UTCDateTime, nullable=False)

    # Relationships
    sessions = relationship(
        "AttendanceSession",
        back_populates="class_",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy='noload'
    )

    def __repr__(self):
        name = self.__dict__.get('name', '<detached>')
        return f"<Class(id={self.__dict__.get('id')}, name={name})>"
