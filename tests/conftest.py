# tests/conftest.py
from datetime import datetime, timedelta, timezone

import pytest

from qr_attendance.core.database import build_engine, build_session_factory, init_db
from qr_attendance.services import (
    AttendanceReportService,
    CheckinValidator,
    ClassService,
    CodePayloadCodec,
    InMemoryPresenceFeed,
    Notifier,
    SessionManager,
)
from qr_attendance.storage import InMemoryAttendanceStore, SQLAlchemyAttendanceStore

ORIGIN = "https://chamada.example.com"


class FakeClock:
    """Controllable replacement for utcnow"""

    def __init__(self, start: datetime = datetime(2024, 3, 18, 11, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_confirmation(self, **kwargs) -> bool:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append(kwargs)
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec():
    return CodePayloadCodec(origin=ORIGIN)


@pytest.fixture
async def store():
    return InMemoryAttendanceStore()


@pytest.fixture
async def sql_store(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'attendance.db'}")
    await init_db(engine)
    session_factory = build_session_factory(engine)
    async with session_factory() as db:
        yield SQLAlchemyAttendanceStore(db)
    await engine.dispose()


@pytest.fixture(params=["memory", "sql"])
async def any_store(request, tmp_path):
    """Runs the test once against each store implementation"""
    if request.param == "memory":
        yield InMemoryAttendanceStore()
        return
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'attendance.db'}")
    await init_db(engine)
    async with build_session_factory(engine)() as db:
        yield SQLAlchemyAttendanceStore(db)
    await engine.dispose()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def feed():
    feed = InMemoryPresenceFeed()
    yield feed
    await feed.close()


@pytest.fixture
def class_service(store, clock):
    return ClassService(store, clock=clock)


@pytest.fixture
def manager(store, codec, clock):
    return SessionManager(store, codec, clock=clock)


@pytest.fixture
def validator(store, notifier, feed, clock):
    return CheckinValidator(store, notifier=notifier, feed=feed, clock=clock)


@pytest.fixture
def reports(store, codec, clock):
    return AttendanceReportService(store, codec, clock=clock)


@pytest.fixture
async def class_id(class_service):
    class_ = await class_service.create_class(
        "Cálculo I", "MAT101", "Seg e Qua 08:00", "Turma da manhã", teacher_id="prof-1"
    )
    return class_.id
