import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tutor_scheduler.config import Settings
from tutor_scheduler.database import Base, get_db
from tutor_scheduler.main import app
from tutor_scheduler.models.schemas import Role, UserCreate
from tutor_scheduler.services.store import ScheduleStore
from tutor_scheduler.services.workflow import SchedulingService

# Use in-memory DB for tests with StaticPool to share connection
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def settings():
    return Settings(
        database_url=SQLALCHEMY_DATABASE_URL,
        log_level="INFO",
        cors_origins=("*",),
        seed_demo_data=False,
        reschedule_conflict_retries=1,
        max_agenda_range_days=400,
        port=8765,
    )


@pytest.fixture
def store(db_session):
    return ScheduleStore(db_session)


@pytest.fixture
def service(store, settings):
    return SchedulingService(store, settings)


@pytest.fixture
def teacher(service):
    return service.create_user(UserCreate(name="Professor Minerva", role=Role.TEACHER))


@pytest.fixture
def student(service, teacher):
    return service.create_user(UserCreate(name="Harry Potter", role=Role.STUDENT, teacher_id=teacher.id))


@pytest.fixture
def other_student(service, teacher):
    return service.create_user(UserCreate(name="Hermione Granger", role=Role.STUDENT, teacher_id=teacher.id))


@pytest.fixture
def client(db_session):
    """Test client with overridden dependency."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    yield TestClient(app)
    del app.dependency_overrides[get_db]
