from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base, UTCDateTime, generate_uuid


class CheckinRecord(Base):
    """
    One student's attendance confirmation for one session.
    The (session_id, student_registration) pair is unique.
    """
    __tablename__ = "attendance_records"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(
        String(36),
        ForeignKey("attendance_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    student_name = Column(String(200), nullable=False)
    student_registration = Column(String(64), nullable=False)
    email = Column(String(254), nullable=True)
    recorded_at = Column(UTCDateTime, nullable=False)

    # Relationships
    session = relationship("AttendanceSession", back_populates="checkins", lazy='noload')

    __table_args__ = (
        UniqueConstraint(
            "session_id", "student_registration",
            name="uq_attendance_records_session_registration"
        ),
    )

    def __repr__(self):
        return (
            f"<CheckinRecord(session_id={self.__dict__.get('session_id')}, "
            f"registration={self.__dict__.get('student_registration')})>"
        )
