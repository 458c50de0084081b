from datetime import date

from tutor_scheduler.models.schemas import AvailabilitySlot, ItemType
from tutor_scheduler.services.availability import project


def make_slot(slot_id, teacher_id, day, start="16:00", end="17:00"):
    return AvailabilitySlot(id=slot_id, teacher_id=teacher_id, date=day, start_time=start, end_time=end)


def test_projects_one_item_per_slot_in_range():
    slots = [
        make_slot("a1", "t1", date(2025, 4, 15), "10:00", "11:00"),
        make_slot("a2", "t1", date(2025, 4, 22)),
        make_slot("a3", "t1", date(2025, 5, 2)),
    ]

    items = project(slots, "t1", date(2025, 4, 1), date(2025, 4, 30))

    assert [i.id for i in items] == ["a1", "a2"]
    assert items[0].day == date(2025, 4, 15)
    assert items[0].time == "10:00 - 11:00"
    assert all(i.type == ItemType.AVAILABILITY for i in items)
    assert items[1].ref == slots[1]


def test_other_teachers_slots_are_ignored():
    slots = [make_slot("a1", "t1", date(2025, 4, 22)), make_slot("b1", "t2", date(2025, 4, 22))]

    items = project(slots, "t2", date(2025, 4, 1), date(2025, 4, 30))

    assert [i.id for i in items] == ["b1"]


def test_range_bounds_are_inclusive():
    slots = [make_slot("first", "t1", date(2025, 4, 1)), make_slot("last", "t1", date(2025, 4, 30))]

    items = project(slots, "t1", date(2025, 4, 1), date(2025, 4, 30))

    assert {i.id for i in items} == {"first", "last"}
    assert project(slots, "t1", date(2025, 4, 2), date(2025, 4, 29)) == []
