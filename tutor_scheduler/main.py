import logging
from contextlib import asynccontextmanager
from datetime import date

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tutor_scheduler import __version__
from tutor_scheduler.api import agenda, availability, classes, users
from tutor_scheduler.config import get_settings
from tutor_scheduler.database import AvailabilitySlotDB, ClassDefinitionDB, SessionLocal, UserDB, init_db
from tutor_scheduler.errors import ConflictError, QuotaExceededError, SchedulingError
from tutor_scheduler.logging_config import configure_logging

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    init_db()
    if settings.seed_demo_data:
        seed_data()
    yield


def seed_data():
    """Seeds a demo teacher with students, one weekly class and two open slots."""
    db = SessionLocal()
    try:
        if db.query(UserDB).first():
            return
        logger.info("Seeding demo scheduling data...")
        db.add_all([
            UserDB(id="teacher-1", name="Professor Minerva", role="teacher"),
            UserDB(id="student-1", name="Harry Potter", role="student", teacher_id="teacher-1"),
            UserDB(id="student-2", name="Hermione Granger", role="student", teacher_id="teacher-1"),
            UserDB(id="student-3", name="Ron Weasley", role="student", teacher_id="teacher-1"),
        ])
        db.add(ClassDefinitionDB(
            id="class-1",
            student_id="student-1",
            start_date=date(2025, 4, 1),
            end_date=date(2025, 6, 30),
            schedule_slots_json=[
                {"dayOfWeek": 1, "startTime": "09:00", "endTime": "10:00"},
                {"dayOfWeek": 3, "startTime": "11:00", "endTime": "12:00"},
            ],
            is_recurring=True,
            color="#3498db",
        ))
        db.add_all([
            AvailabilitySlotDB(id="slot-1", teacher_id="teacher-1", date=date(2025, 4, 15),
                               start_time="10:00", end_time="11:00", color="#2ecc71"),
            AvailabilitySlotDB(id="slot-2", teacher_id="teacher-1", date=date(2025, 4, 22),
                               start_time="16:00", end_time="17:00", color="#2ecc71"),
        ])
        db.commit()
    finally:
        db.close()


app = FastAPI(title="Tutor Scheduler API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    # Quota refusals are an expected outcome, not a fault
    if isinstance(exc, ConflictError):
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    elif not isinstance(exc, QuotaExceededError):
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


app.include_router(users.router, prefix="/api")
app.include_router(agenda.router, prefix="/api")
app.include_router(classes.router, prefix="/api")
app.include_router(availability.router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "ok", "version": __version__}


if __name__ == "__main__":
    uvicorn.run("tutor_scheduler.main:app", host="127.0.0.1", port=settings.port, reload=True)
