from fastapi import Depends
from sqlalchemy.orm import Session

from tutor_scheduler.config import get_settings
from tutor_scheduler.database import get_db
from tutor_scheduler.services.store import ScheduleStore
from tutor_scheduler.services.workflow import SchedulingService


def get_service(db: Session = Depends(get_db)) -> SchedulingService:
    return SchedulingService(ScheduleStore(db), get_settings())
