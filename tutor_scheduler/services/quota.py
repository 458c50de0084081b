"""Monthly reschedule quota: at most one reschedule per student per calendar month.

The functions here are pure. The atomic check-and-record against the store
happens inside the reschedule transaction (see ``workflow.SchedulingService``),
backed by the unique (student_id, month_key) constraint.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from tutor_scheduler.models.schemas import RescheduleRecord

logger = logging.getLogger(__name__)


def month_key(day: date) -> str:
    return day.strftime("%Y-%m")


def can_reschedule(student_id: str, original_class_date: date,
                   history: Iterable[RescheduleRecord]) -> bool:
    """True iff ``history`` holds no record for the student in the class's month."""
    key = month_key(original_class_date)
    return not any(r.student_id == student_id and r.month_key == key for r in history)


def record_reschedule(student_id: str, original_class_date: date,
                      rescheduled_at: Optional[datetime] = None) -> RescheduleRecord:
    """Builds the audit record for an approved reschedule (not yet persisted)."""
    record = RescheduleRecord(
        id=str(uuid.uuid4()),
        student_id=student_id,
        original_class_date=original_class_date,
        month_key=month_key(original_class_date),
        rescheduled_at=rescheduled_at or datetime.now(timezone.utc),
    )
    logger.debug("Reschedule record built: student=%s month=%s", student_id, record.month_key)
    return record
