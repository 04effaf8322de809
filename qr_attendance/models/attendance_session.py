from sqlalchemy import Column, String, Boolean, ForeignKey, Index, Text
from sqlalchemy.orm import relationship
from .base import Base, UTCDateTime, generate_uuid


class AttendanceSession(Base):
    """One roll call for a class, shown to students as a QR code"""
    __tablename__ = "attendance_sessions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(UTCDateTime, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    code_payload = Column(Text, nullable=False, default="")
    session_date = Column(String(10), nullable=False)  # e.g. "2024-03-18"
    session_time = Column(String(8), nullable=False)   # e.g. "08:15"

    # Relationships
    class_ = relationship("Class", back_populates="sessions", lazy='noload')
    checkins = relationship(
        "CheckinRecord",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy='noload'
    )

    __table_args__ = (
        Index("ix_attendance_sessions_class_active", "class_id", "is_active"),
    )

    def __repr__(self):
        return (
            f"<AttendanceSession(id={self.__dict__.get('id')}, "
            f"class_id={self.__dict__.get('class_id')}, is_active={self.__dict__.get('is_active')})>"
        )
