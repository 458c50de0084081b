from datetime import date, timedelta
from typing import Iterator, List

from tutor_scheduler.models.schemas import AgendaItem, ClassDefinition, ItemType, ScheduleSlot, day_of_week

CLASS_ITEM_NAME = "Class"


def daterange(start: date, end: date) -> Iterator[date]:
    """Yields every calendar day in [start, end]."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def format_time_range(start_time: str, end_time: str) -> str:
    return f"{start_time} - {end_time}"


def slots_on(class_def: ClassDefinition, day: date) -> List[ScheduleSlot]:
    """Schedule slots of the class that produce an occurrence on ``day``."""
    if not (class_def.start_date <= day <= class_def.end_date):
        return []
    if not class_def.is_recurring and day != class_def.start_date:
        return []
    weekday = day_of_week(day)
    return [slot for slot in class_def.schedule_slots if slot.day_of_week == weekday]


def expand(class_def: ClassDefinition, interval_start: date, interval_end: date) -> List[AgendaItem]:
    """
    Expands a class definition into its concrete occurrences within an interval.

    The query interval is intersected with [start_date, end_date]. Every day of
    the intersection whose weekday matches a schedule slot yields one item,
    provided the class is recurring or the day is the class's start date
    (how one-off classes are represented).

    Items carry a neutral name; viewer-specific naming is applied by the
    agenda merger. Input is assumed to be validated.

    Args:
        class_def (ClassDefinition): Definition to expand.
        interval_start (date): First day of the query interval (inclusive).
        interval_end (date): Last day of the query interval (inclusive).

    Returns:
        list: AgendaItems ordered by day, then slot order.
    """
    first = max(class_def.start_date, interval_start)
    last = min(class_def.end_date, interval_end)
    if first > last:
        return []

    items = []
    for day in daterange(first, last):
        for slot in slots_on(class_def, day):
            items.append(AgendaItem(
                id=class_def.id,
                name=CLASS_ITEM_NAME,
                time=format_time_range(slot.start_time, slot.end_time),
                type=ItemType.CLASS,
                day=day,
                ref=class_def,
            ))
    return items


def occurs_on(class_def: ClassDefinition, day: date) -> bool:
    """True if the class has at least one occurrence on ``day``."""
    return bool(slots_on(class_def, day))
