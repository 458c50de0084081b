import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tutor_scheduler.database import AvailabilitySlotDB, ClassDefinitionDB, RescheduleRecordDB, UserDB, new_id
from tutor_scheduler.errors import ConflictError
from tutor_scheduler.models.schemas import (
    AvailabilityCreate,
    AvailabilitySlot,
    ClassCreate,
    ClassDefinition,
    RescheduleRecord,
    Role,
    ScheduleSlot,
    User,
    UserCreate,
)

logger = logging.getLogger(__name__)


def _to_user(row: UserDB) -> User:
    return User(id=row.id, name=row.name, role=Role(row.role), teacher_id=row.teacher_id)


def _to_class(row: ClassDefinitionDB) -> ClassDefinition:
    return ClassDefinition(
        id=row.id,
        student_id=row.student_id,
        start_date=row.start_date,
        end_date=row.end_date,
        schedule_slots=[ScheduleSlot.model_validate(s) for s in row.schedule_slots_json],
        is_recurring=row.is_recurring,
        color=row.color,
    )


def _to_availability(row: AvailabilitySlotDB) -> AvailabilitySlot:
    return AvailabilitySlot(
        id=row.id,
        teacher_id=row.teacher_id,
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
        color=row.color,
    )


def _as_utc(value: datetime) -> datetime:
    # Timestamps are written in UTC; SQLite drops the offset on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_record(row: RescheduleRecordDB) -> RescheduleRecord:
    return RescheduleRecord(
        id=row.id,
        student_id=row.student_id,
        original_class_date=row.original_class_date,
        month_key=row.month_key,
        rescheduled_at=_as_utc(row.rescheduled_at),
    )


def _slots_json(slots: Iterable[ScheduleSlot]) -> list:
    return [s.model_dump(by_alias=True) for s in slots]


class ScheduleStore:
    """
    Entity store for users, classes, availability and reschedule records.

    Wraps a SQLAlchemy session and hands out pydantic models so the engine
    never touches ORM rows. Writes are only made durable by ``transaction()``,
    which commits all of them together or rolls all of them back.

    Attributes:
        db (Session): Session used for every query and write.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self):
        """
        Commits everything written inside the block as one unit.

        Unique-constraint violations and optimistic-version mismatches mean a
        concurrent request won the race; they surface as ``ConflictError``
        after rollback. Any other error is rolled back and re-raised as is.
        """
        try:
            yield self
            self.db.commit()
        except (IntegrityError, StaleDataError) as exc:
            self.db.rollback()
            logger.warning("Store conflict, transaction rolled back: %s", exc.__class__.__name__)
            raise ConflictError("The schedule was changed by another request. Please try again.") from exc
        except Exception:
            self.db.rollback()
            raise

    # --- Users ---

    def add_user(self, data: UserCreate) -> User:
        row = UserDB(id=new_id(), name=data.name, role=data.role.value, teacher_id=data.teacher_id)
        self.db.add(row)
        self.db.flush()
        return _to_user(row)

    def get_user(self, user_id: str) -> Optional[User]:
        row = self.db.query(UserDB).filter(UserDB.id == user_id).first()
        return _to_user(row) if row else None

    def list_users(self, role: Optional[Role] = None) -> List[User]:
        query = self.db.query(UserDB)
        if role is not None:
            query = query.filter(UserDB.role == Role(role).value)
        return [_to_user(r) for r in query.order_by(UserDB.name, UserDB.id).all()]

    def users_for_teacher(self, teacher_id: str) -> Dict[str, User]:
        """Directory of the teacher and the teacher's students, keyed by id."""
        rows = self.db.query(UserDB).filter((UserDB.id == teacher_id) | (UserDB.teacher_id == teacher_id)).all()
        return {r.id: _to_user(r) for r in rows}

    # --- Class definitions ---

    def _class_row(self, class_id: str, for_update: bool = False) -> Optional[ClassDefinitionDB]:
        query = self.db.query(ClassDefinitionDB).filter(ClassDefinitionDB.id == class_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_class(self, class_id: str, for_update: bool = False) -> Optional[ClassDefinition]:
        row = self._class_row(class_id, for_update=for_update)
        return _to_class(row) if row else None

    def query_classes(self, student_ids: Iterable[str], range_start: date, range_end: date) -> List[ClassDefinition]:
        """Classes of the given students whose date range overlaps [range_start, range_end]."""
        student_ids = list(student_ids)
        if not student_ids:
            return []
        rows = (
            self.db.query(ClassDefinitionDB)
            .filter(
                ClassDefinitionDB.student_id.in_(student_ids),
                ClassDefinitionDB.start_date <= range_end,
                ClassDefinitionDB.end_date >= range_start,
            )
            .order_by(ClassDefinitionDB.start_date, ClassDefinitionDB.id)
            .all()
        )
        return [_to_class(r) for r in rows]

    def add_class(self, data: ClassCreate) -> ClassDefinition:
        row = ClassDefinitionDB(
            id=new_id(),
            student_id=data.student_id,
            start_date=data.start_date,
            end_date=data.end_date,
            schedule_slots_json=_slots_json(data.schedule_slots),
            is_recurring=data.is_recurring,
            color=data.color,
        )
        self.db.add(row)
        self.db.flush()
        return _to_class(row)

    def replace_class(self, class_id: str, data: ClassCreate) -> Optional[ClassDefinition]:
        """Overwrites a definition in place; returns None if it does not exist."""
        row = self._class_row(class_id, for_update=True)
        if not row:
            return None
        row.student_id = data.student_id
        row.start_date = data.start_date
        row.end_date = data.end_date
        row.schedule_slots_json = _slots_json(data.schedule_slots)
        row.is_recurring = data.is_recurring
        row.color = data.color
        self.db.flush()
        return _to_class(row)

    def delete_class(self, class_id: str) -> bool:
        row = self._class_row(class_id, for_update=True)
        if not row:
            return False
        self.db.delete(row)
        self.db.flush()
        return True

    # --- Availability ---

    def _availability_row(self, slot_id: str, for_update: bool = False) -> Optional[AvailabilitySlotDB]:
        query = self.db.query(AvailabilitySlotDB).filter(AvailabilitySlotDB.id == slot_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_availability(self, slot_id: str, for_update: bool = False) -> Optional[AvailabilitySlot]:
        row = self._availability_row(slot_id, for_update=for_update)
        return _to_availability(row) if row else None

    def query_availability(self, teacher_id: str, range_start: date, range_end: date) -> List[AvailabilitySlot]:
        rows = (
            self.db.query(AvailabilitySlotDB)
            .filter(
                AvailabilitySlotDB.teacher_id == teacher_id,
                AvailabilitySlotDB.date >= range_start,
                AvailabilitySlotDB.date <= range_end,
            )
            .order_by(AvailabilitySlotDB.date, AvailabilitySlotDB.start_time, AvailabilitySlotDB.id)
            .all()
        )
        return [_to_availability(r) for r in rows]

    def add_availability(self, data: AvailabilityCreate) -> AvailabilitySlot:
        row = AvailabilitySlotDB(
            id=new_id(),
            teacher_id=data.teacher_id,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            color=data.color,
        )
        self.db.add(row)
        self.db.flush()
        return _to_availability(row)

    def delete_availability(self, slot_id: str) -> bool:
        row = self._availability_row(slot_id, for_update=True)
        if not row:
            return False
        self.db.delete(row)
        self.db.flush()
        return True

    # --- Reschedule records ---

    def reschedule_history(self, student_id: str, month_key: Optional[str] = None,
                           for_update: bool = False) -> List[RescheduleRecord]:
        query = self.db.query(RescheduleRecordDB).filter(RescheduleRecordDB.student_id == student_id)
        if month_key is not None:
            query = query.filter(RescheduleRecordDB.month_key == month_key)
        if for_update:
            query = query.with_for_update()
        rows = query.order_by(RescheduleRecordDB.rescheduled_at, RescheduleRecordDB.id).all()
        return [_to_record(r) for r in rows]

    def add_reschedule_record(self, record: RescheduleRecord) -> RescheduleRecord:
        """Inserts an audit record; a second record for the same month fails on flush."""
        row = RescheduleRecordDB(
            id=record.id,
            student_id=record.student_id,
            original_class_date=record.original_class_date,
            month_key=record.month_key,
            rescheduled_at=_as_utc(record.rescheduled_at),
        )
        self.db.add(row)
        self.db.flush()
        return record
