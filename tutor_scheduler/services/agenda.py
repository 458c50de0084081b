from datetime import date
from typing import Dict, Iterable, Mapping, Optional

from tutor_scheduler.models.schemas import AgendaItem, AgendaSchedule, Role, User
from tutor_scheduler.services.recurrence import daterange

UNKNOWN_USER_NAME = "Unknown User"


def _user_name(user_id: Optional[str], users: Mapping[str, User]) -> str:
    user = users.get(user_id) if user_id else None
    return user.name if user else UNKNOWN_USER_NAME


def _sort_key(item: AgendaItem):
    # "HH:mm - HH:mm" is fixed width; id keeps ties stable across store orderings
    return (item.time, item.type.value, item.id)


def _scoped_classes(class_items: Iterable[AgendaItem], viewer_role: Role, viewer_id: str,
                    users: Mapping[str, User]) -> Iterable[AgendaItem]:
    for item in class_items:
        student_id = item.ref.student_id
        if viewer_role == Role.STUDENT:
            if student_id != viewer_id:
                continue
            yield item.model_copy(update={"name": "Your Class"})
        else:
            student = users.get(student_id)
            if student is None or student.teacher_id != viewer_id:
                continue
            yield item.model_copy(update={"name": f"Class with {student.name}"})


def _scoped_availability(availability_items: Iterable[AgendaItem], viewer_role: Role, viewer_id: str,
                         users: Mapping[str, User]) -> Iterable[AgendaItem]:
    if viewer_role == Role.STUDENT:
        viewer = users.get(viewer_id)
        teacher_id = viewer.teacher_id if viewer else None
        if not teacher_id:
            return
        name = f"Available Slot (with {_user_name(teacher_id, users)})"
    else:
        teacher_id = viewer_id
        name = "Available for Rescheduling"

    for item in availability_items:
        if item.ref.teacher_id != teacher_id:
            continue
        yield item.model_copy(update={"name": name})


def merge(class_items: Iterable[AgendaItem], availability_items: Iterable[AgendaItem],
          viewer_role: Role, viewer_id: str, users: Mapping[str, User]) -> AgendaSchedule:
    """
    Combines class occurrences and availability into one per-day agenda.

    Role scoping:
    - Student: only the student's own classes, and only availability of the
      student's assigned teacher.
    - Teacher: classes of the teacher's students and the teacher's own
      availability.

    Naming is decided here once for every screen: students see generic class
    names and the teacher's name on openings; teachers see student names.

    Args:
        class_items: Items produced by ``recurrence.expand``.
        availability_items: Items produced by ``availability.project``.
        viewer_role (Role): Whose viewpoint the agenda is built for.
        viewer_id (str): Id of the viewing user.
        users (Mapping[str, User]): Directory used for scoping and names.

    Returns:
        dict: date -> items sorted ascending by start time.
    """
    viewer_role = Role(viewer_role)
    schedule: Dict[date, list] = {}

    for item in _scoped_classes(class_items, viewer_role, viewer_id, users):
        schedule.setdefault(item.day, []).append(item)
    for item in _scoped_availability(availability_items, viewer_role, viewer_id, users):
        schedule.setdefault(item.day, []).append(item)

    for day_items in schedule.values():
        day_items.sort(key=_sort_key)
    return dict(sorted(schedule.items()))


def build_agenda(class_items: Iterable[AgendaItem], availability_items: Iterable[AgendaItem],
                 viewer_role: Role, viewer_id: str, users: Mapping[str, User],
                 range_start: date, range_end: date) -> AgendaSchedule:
    """Like :func:`merge`, but every day of the range is present, empty days included."""
    merged = merge(class_items, availability_items, viewer_role, viewer_id, users)
    return {day: merged.get(day, []) for day in daterange(range_start, range_end)}
