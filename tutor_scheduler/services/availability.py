from datetime import date
from typing import Iterable, List

from tutor_scheduler.models.schemas import AgendaItem, AvailabilitySlot, ItemType
from tutor_scheduler.services.recurrence import format_time_range

AVAILABILITY_ITEM_NAME = "Available Slot"


def project(slots: Iterable[AvailabilitySlot], teacher_id: str,
            interval_start: date, interval_end: date) -> List[AgendaItem]:
    """
    Projects a teacher's availability slots onto a date interval.

    Slots never recur: each slot dated inside [interval_start, interval_end]
    yields exactly one item. Booked slots are removed from the store, so
    everything passed in is still open.
    """
    items = []
    for slot in slots:
        if slot.teacher_id != teacher_id:
            continue
        if not (interval_start <= slot.date <= interval_end):
            continue
        items.append(AgendaItem(
            id=slot.id,
            name=AVAILABILITY_ITEM_NAME,
            time=format_time_range(slot.start_time, slot.end_time),
            type=ItemType.AVAILABILITY,
            day=slot.date,
            ref=slot,
        ))
    return items
