import logging
from datetime import date, timedelta
from typing import Callable, List, Optional, Tuple, TypeVar

from tutor_scheduler.config import Settings, get_settings
from tutor_scheduler.errors import (
    ConflictError,
    InvalidOccurrenceError,
    NotFoundError,
    QuotaExceededError,
    SlotUnavailableError,
    ValidationFailedError,
)
from tutor_scheduler.models.schemas import (
    AgendaSchedule,
    AvailabilityCreate,
    AvailabilitySlot,
    ClassCreate,
    ClassDefinition,
    ClassOccurrenceRef,
    RescheduleRecord,
    RescheduleStatus,
    Role,
    ScheduleSlot,
    User,
    UserCreate,
    day_of_week,
)
from tutor_scheduler.services.agenda import build_agenda
from tutor_scheduler.services.availability import project
from tutor_scheduler.services.quota import can_reschedule, month_key, record_reschedule
from tutor_scheduler.services.recurrence import expand, slots_on
from tutor_scheduler.services.store import ScheduleStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _has_occurrences(class_def: ClassDefinition) -> bool:
    return bool(expand(class_def, class_def.start_date, class_def.end_date))


def split_around(class_def: ClassDefinition, day: date) -> List[ClassDefinition]:
    """
    Splits a recurring definition around a single cancelled day.

    Returns the remaining fragments (before and after ``day``) that still
    have at least one occurrence. Fragments keep the original id; the caller
    decides which one keeps it in the store.
    """
    fragments = []
    before_end = day - timedelta(days=1)
    after_start = day + timedelta(days=1)
    if class_def.start_date <= before_end:
        fragments.append(class_def.model_copy(update={"end_date": before_end}))
    if after_start <= class_def.end_date:
        fragments.append(class_def.model_copy(update={"start_date": after_start}))
    return [f for f in fragments if _has_occurrences(f)]


def occurrence_slot(class_def: ClassDefinition, ref: ClassOccurrenceRef) -> ScheduleSlot:
    """
    Resolves the schedule slot behind a referenced occurrence.

    ``ref.start_time`` is only required when the class meets more than once
    on ``ref.date``.

    Raises:
        InvalidOccurrenceError: No occurrence matches, or several do.
    """
    candidates = slots_on(class_def, ref.date)
    if ref.start_time is not None:
        candidates = [s for s in candidates if s.start_time == ref.start_time]
    if not candidates:
        at = f" at {ref.start_time}" if ref.start_time else ""
        raise InvalidOccurrenceError(
            f"Class {ref.class_id} has no scheduled occurrence on {ref.date.isoformat()}{at}"
        )
    if len(candidates) > 1:
        raise InvalidOccurrenceError(
            f"Class {ref.class_id} meets {len(candidates)} times on {ref.date.isoformat()}; startTime is required"
        )
    return candidates[0]


class SchedulingService:
    """
    Query and command interface of the scheduling engine.

    Reads (agenda, quota status) run against a point-in-time snapshot of the
    store. Commands that touch several entities run inside one store
    transaction; conflicts caused by concurrent requests are retried
    ``settings.reschedule_conflict_retries`` times before ``ConflictError``
    reaches the caller.

    Attributes:
        store (ScheduleStore): Entity store.
        settings (Settings): Runtime settings (range limit, retries).
    """

    def __init__(self, store: ScheduleStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    # --- Helpers ---

    def _require_user(self, user_id: str, role: Optional[Role] = None) -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if role is not None and user.role != role:
            raise ValidationFailedError(f"User {user_id} is not a {role.value}")
        return user

    def _require_occurrence(self, ref: ClassOccurrenceRef) -> Tuple[ClassDefinition, ScheduleSlot]:
        class_def = self.store.get_class(ref.class_id)
        if class_def is None:
            raise NotFoundError(f"Class {ref.class_id} not found")
        return class_def, occurrence_slot(class_def, ref)

    def _check_range(self, range_start: date, range_end: date) -> None:
        if range_end < range_start:
            raise ValidationFailedError("Range end cannot be before range start")
        span = (range_end - range_start).days + 1
        if span > self.settings.max_agenda_range_days:
            raise ValidationFailedError(
                f"Range spans {span} days; at most {self.settings.max_agenda_range_days} are allowed"
            )

    def _with_conflict_retry(self, operation: str, func: Callable[[], T]) -> T:
        attempts = self.settings.reschedule_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return func()
            except ConflictError as exc:
                if attempt >= attempts:
                    logger.warning("%s gave up after %d attempt(s): %s", operation, attempt, exc.message)
                    raise
                logger.warning("%s hit a concurrent change, retrying (attempt %d/%d)", operation, attempt, attempts)
        raise ConflictError("Please try again.")  # attempts is always >= 1

    # --- Queries ---

    def get_agenda(self, viewer_role: Role, viewer_id: str, range_start: date, range_end: date) -> AgendaSchedule:
        """
        Builds the calendar feed for a viewer over [range_start, range_end].

        Students see their own classes and their teacher's availability;
        teachers see the classes of their students and their own availability.
        Every day of the range is a key of the result.
        """
        viewer_role = Role(viewer_role)
        self._check_range(range_start, range_end)
        viewer = self._require_user(viewer_id, viewer_role)

        if viewer_role == Role.STUDENT:
            teacher_id = viewer.teacher_id
            users = {viewer.id: viewer}
            teacher = self.store.get_user(teacher_id) if teacher_id else None
            if teacher:
                users[teacher.id] = teacher
            student_ids = [viewer.id]
        else:
            teacher_id = viewer.id
            users = self.store.users_for_teacher(viewer.id)
            student_ids = [u.id for u in users.values() if u.role == Role.STUDENT]

        class_items = []
        for class_def in self.store.query_classes(student_ids, range_start, range_end):
            class_items.extend(expand(class_def, range_start, range_end))

        availability_items = []
        if teacher_id:
            slots = self.store.query_availability(teacher_id, range_start, range_end)
            availability_items = project(slots, teacher_id, range_start, range_end)

        return build_agenda(class_items, availability_items, viewer_role, viewer_id, users, range_start, range_end)

    def reschedule_status(self, student_id: str, class_date: date) -> RescheduleStatus:
        self._require_user(student_id, Role.STUDENT)
        history = self.store.reschedule_history(student_id)
        return RescheduleStatus(
            student_id=student_id,
            month_key=month_key(class_date),
            can_reschedule=can_reschedule(student_id, class_date, history),
        )

    def list_reschedules(self, student_id: str) -> List[RescheduleRecord]:
        self._require_user(student_id, Role.STUDENT)
        return self.store.reschedule_history(student_id)

    def get_class(self, class_id: str) -> ClassDefinition:
        class_def = self.store.get_class(class_id)
        if class_def is None:
            raise NotFoundError(f"Class {class_id} not found")
        return class_def

    def get_user(self, user_id: str) -> User:
        return self._require_user(user_id)

    def list_users(self, role: Optional[Role] = None) -> List[User]:
        return self.store.list_users(role)

    # --- Commands: directory ---

    def create_user(self, data: UserCreate) -> User:
        if data.teacher_id is not None:
            self._require_user(data.teacher_id, Role.TEACHER)
        with self.store.transaction():
            user = self.store.add_user(data)
        logger.info("User %s created (%s)", user.id, user.role.value)
        return user

    # --- Commands: teacher authoring ---

    def create_class(self, data: ClassCreate) -> ClassDefinition:
        self._require_user(data.student_id, Role.STUDENT)
        with self.store.transaction():
            class_def = self.store.add_class(data)
        logger.info("Class %s created for student %s (%s..%s)",
                    class_def.id, class_def.student_id, class_def.start_date, class_def.end_date)
        return class_def

    def update_class(self, class_id: str, data: ClassCreate) -> ClassDefinition:
        self._require_user(data.student_id, Role.STUDENT)
        with self.store.transaction():
            class_def = self.store.replace_class(class_id, data)
            if class_def is None:
                raise NotFoundError(f"Class {class_id} not found")
        logger.info("Class %s updated", class_id)
        return class_def

    def delete_class(self, class_id: str) -> None:
        with self.store.transaction():
            if not self.store.delete_class(class_id):
                raise NotFoundError(f"Class {class_id} not found")
        logger.info("Class %s deleted", class_id)

    def create_availability(self, data: AvailabilityCreate) -> AvailabilitySlot:
        self._require_user(data.teacher_id, Role.TEACHER)
        with self.store.transaction():
            slot = self.store.add_availability(data)
        logger.info("Availability %s created for teacher %s on %s", slot.id, slot.teacher_id, slot.date)
        return slot

    def delete_availability(self, slot_id: str) -> None:
        with self.store.transaction():
            if not self.store.delete_availability(slot_id):
                raise NotFoundError(f"Availability slot {slot_id} not found")
        logger.info("Availability %s deleted", slot_id)

    # --- Commands: cancellation / reschedule ---

    def _cancel_occurrence(self, ref: ClassOccurrenceRef) -> None:
        """Removes one occurrence from the store. Must run inside a transaction."""
        changed = ConflictError("The class was changed by another request. Please try again.")
        class_def = self.store.get_class(ref.class_id, for_update=True)
        if class_def is None:
            raise changed
        try:
            cancelled = occurrence_slot(class_def, ref)
        except InvalidOccurrenceError as exc:
            raise changed from exc

        if not class_def.is_recurring:
            self.store.delete_class(class_def.id)
            return

        # Recurring: shorten the series and continue it after the cancelled day
        fragments = split_around(class_def, ref.date)
        if fragments:
            self.store.replace_class(class_def.id, fragments[0])
            for fragment in fragments[1:]:
                self.store.add_class(fragment)
        else:
            self.store.delete_class(class_def.id)

        # Other classes on the same day stay, as one-offs
        for slot in slots_on(class_def, ref.date):
            if slot == cancelled:
                continue
            self.store.add_class(ClassCreate(
                student_id=class_def.student_id,
                start_date=ref.date,
                end_date=ref.date,
                schedule_slots=[slot],
                is_recurring=False,
                color=class_def.color,
            ))

    def cancel_class(self, ref: ClassOccurrenceRef) -> None:
        """
        Cancels a single class occurrence.

        A one-off class is deleted. A recurring class is split around the
        cancelled day so the rest of the series is untouched; its other slots
        on that day are kept as one-off classes.

        Raises:
            NotFoundError: Unknown class.
            InvalidOccurrenceError: The class does not occur on that date, or
                meets several times that day and ``ref.start_time`` is missing.
            ConflictError: Concurrent changes persisted through the retry.
        """
        def attempt():
            self._require_occurrence(ref)
            with self.store.transaction():
                self._cancel_occurrence(ref)

        self._with_conflict_retry("cancel_class", attempt)
        logger.info("Class %s cancelled on %s", ref.class_id, ref.date)

    def reschedule_class(self, ref: ClassOccurrenceRef, availability_id: str) -> ClassDefinition:
        """
        Moves one class occurrence onto a teacher's availability slot.

        Steps:
        1. Pre-check on the current snapshot: the occurrence and slot exist,
           the slot belongs to the student's teacher, and the student has not
           rescheduled in the occurrence's month yet.
        2. In one transaction: re-check the quota and the slot, cancel the
           occurrence, create the one-off replacement class, consume the slot
           and record the quota use.

        Args:
            ref (ClassOccurrenceRef): Occurrence being moved away from.
            availability_id (str): Slot chosen for the replacement.

        Returns:
            ClassDefinition: The new non-recurring class.

        Raises:
            QuotaExceededError: Already rescheduled this month (no mutation).
            SlotUnavailableError: The slot does not exist any more.
            ConflictError: Concurrent changes persisted through the retry.
        """
        return self._with_conflict_retry(
            "reschedule_class", lambda: self._reschedule_once(ref, availability_id)
        )

    def _reschedule_once(self, ref: ClassOccurrenceRef, availability_id: str) -> ClassDefinition:
        # 1. Pre-check
        class_def, _ = self._require_occurrence(ref)
        student = self._require_user(class_def.student_id, Role.STUDENT)
        key = month_key(ref.date)
        if not can_reschedule(student.id, ref.date, self.store.reschedule_history(student.id)):
            logger.info("Reschedule refused: student %s already rescheduled in %s", student.id, key)
            raise QuotaExceededError(student.id, key)

        slot = self.store.get_availability(availability_id)
        if slot is None:
            raise SlotUnavailableError("This slot is no longer available.")
        if slot.teacher_id != student.teacher_id:
            raise ValidationFailedError("The slot is not offered by the student's teacher")

        # 2. Check and act atomically
        with self.store.transaction():
            history = self.store.reschedule_history(student.id, key, for_update=True)
            if not can_reschedule(student.id, ref.date, history):
                raise ConflictError("Another reschedule was recorded for this month. Please try again.")
            locked_slot = self.store.get_availability(availability_id, for_update=True)
            if locked_slot is None:
                raise ConflictError("This slot was just booked. Please try again.")

            self._cancel_occurrence(ref)
            new_class = self.store.add_class(ClassCreate(
                student_id=student.id,
                start_date=locked_slot.date,
                end_date=locked_slot.date,
                schedule_slots=[ScheduleSlot(
                    day_of_week=day_of_week(locked_slot.date),
                    start_time=locked_slot.start_time,
                    end_time=locked_slot.end_time,
                )],
                is_recurring=False,
                color=class_def.color,
            ))
            self.store.delete_availability(locked_slot.id)
            self.store.add_reschedule_record(record_reschedule(student.id, ref.date))

        logger.info("Class %s on %s rescheduled to %s %s-%s (new class %s)",
                    ref.class_id, ref.date, locked_slot.date, locked_slot.start_time,
                    locked_slot.end_time, new_class.id)
        return new_class
