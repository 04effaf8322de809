from .qr_codec import CodePayloadCodec, EncodedSession
from .presence_feed import (
    PresenceFeed,
    InMemoryPresenceFeed,
    RedisPresenceFeed,
    SubscriptionHandle,
    build_presence_feed,
)
from .notification_service import Notifier, EmailNotifier, LoggingNotifier, build_notifier
from .report_service import AttendanceReportService, SessionRoster, RosterEntry, report_csv
from .session_manager import SessionManager, ActiveSessionView, SessionClosure, NEVER_EXPIRES
from .checkin_service import CheckinValidator, CheckinOutcome
from .class_service import ClassService

__all__ = [
    "CodePayloadCodec",
    "EncodedSession",
    "PresenceFeed",
    "InMemoryPresenceFeed",
    "RedisPresenceFeed",
    "SubscriptionHandle",
    "build_presence_feed",
    "Notifier",
    "EmailNotifier",
    "LoggingNotifier",
    "build_notifier",
    "AttendanceReportService",
    "SessionRoster",
    "RosterEntry",
    "report_csv",
    "SessionManager",
    "ActiveSessionView",
    "SessionClosure",
    "NEVER_EXPIRES",
    "CheckinValidator",
    "CheckinOutcome",
    "ClassService",
]
