import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, JSON, String, UniqueConstraint, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from tutor_scheduler.config import get_settings

DATABASE_URL = get_settings().database_url

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class UserDB(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False)  # "teacher" | "student"
    teacher_id = Column(String, index=True, nullable=True)  # students only


class ClassDefinitionDB(Base):
    __tablename__ = "class_definitions"

    id = Column(String, primary_key=True, default=new_id)
    student_id = Column(String, index=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    schedule_slots_json = Column(JSON, nullable=False)  # [{dayOfWeek, startTime, endTime}, ...]
    is_recurring = Column(Boolean, default=True, nullable=False)
    color = Column(String, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class AvailabilitySlotDB(Base):
    __tablename__ = "availability_slots"

    id = Column(String, primary_key=True, default=new_id)
    teacher_id = Column(String, index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    color = Column(String, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class RescheduleRecordDB(Base):
    __tablename__ = "reschedule_records"
    # One reschedule per student per calendar month
    __table_args__ = (UniqueConstraint("student_id", "month_key", name="uq_reschedule_student_month"),)

    id = Column(String, primary_key=True, default=new_id)
    student_id = Column(String, index=True, nullable=False)
    original_class_date = Column(Date, nullable=False)
    month_key = Column(String(7), nullable=False)  # YYYY-MM
    rescheduled_at = Column(DateTime(timezone=True), nullable=False)


def init_db():
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
