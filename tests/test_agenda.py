from datetime import date

import pytest

from tutor_scheduler.models.schemas import (
    AvailabilitySlot,
    ClassDefinition,
    ItemType,
    Role,
    ScheduleSlot,
    User,
)
from tutor_scheduler.services.agenda import build_agenda, merge
from tutor_scheduler.services.availability import project
from tutor_scheduler.services.recurrence import expand

APRIL_START = date(2025, 4, 1)
APRIL_END = date(2025, 4, 30)


@pytest.fixture
def users():
    return {
        "t1": User(id="t1", name="Professor Minerva", role=Role.TEACHER),
        "t2": User(id="t2", name="Professor Snape", role=Role.TEACHER),
        "s1": User(id="s1", name="Harry Potter", role=Role.STUDENT, teacher_id="t1"),
        "s2": User(id="s2", name="Hermione Granger", role=Role.STUDENT, teacher_id="t1"),
        "s3": User(id="s3", name="Draco Malfoy", role=Role.STUDENT, teacher_id="t2"),
    }


def weekly(class_id, student_id, weekday, start, end):
    return ClassDefinition(
        id=class_id,
        student_id=student_id,
        start_date=APRIL_START,
        end_date=APRIL_END,
        schedule_slots=[ScheduleSlot(day_of_week=weekday, start_time=start, end_time=end)],
    )


@pytest.fixture
def class_items():
    classes = [
        weekly("c1", "s1", 1, "09:00", "10:00"),  # Harry, Mondays
        weekly("c2", "s2", 1, "07:30", "08:30"),  # Hermione, Mondays
        weekly("c3", "s3", 1, "12:00", "13:00"),  # Draco (other teacher), Mondays
    ]
    return [item for c in classes for item in expand(c, APRIL_START, APRIL_END)]


@pytest.fixture
def slots():
    return [
        AvailabilitySlot(id="a1", teacher_id="t1", date=date(2025, 4, 22), start_time="16:00", end_time="17:00"),
        AvailabilitySlot(id="a2", teacher_id="t1", date=date(2025, 4, 7), start_time="08:45", end_time="09:00"),
        AvailabilitySlot(id="b1", teacher_id="t2", date=date(2025, 4, 22), start_time="10:00", end_time="11:00"),
    ]


def availability_items(slots, teacher_id):
    return project(slots, teacher_id, APRIL_START, APRIL_END)


def test_student_sees_own_classes_and_teacher_availability(users, class_items, slots):
    agenda = merge(class_items, availability_items(slots, "t1"), Role.STUDENT, "s1", users)

    classes = [i for day in agenda.values() for i in day if i.type == ItemType.CLASS]
    openings = [i for day in agenda.values() for i in day if i.type == ItemType.AVAILABILITY]
    assert {i.id for i in classes} == {"c1"}
    assert all(i.name == "Your Class" for i in classes)
    assert {i.id for i in openings} == {"a1", "a2"}
    assert all(i.name == "Available Slot (with Professor Minerva)" for i in openings)


def test_student_never_sees_other_teachers_slots(users, slots):
    items = availability_items(slots, "t1") + availability_items(slots, "t2")

    agenda = merge([], items, Role.STUDENT, "s1", users)

    assert [i.id for i in agenda[date(2025, 4, 22)]] == ["a1"]


def test_teacher_sees_own_students_with_names(users, class_items, slots):
    agenda = merge(class_items, availability_items(slots, "t1"), Role.TEACHER, "t1", users)

    monday = agenda[date(2025, 4, 7)]
    assert [i.name for i in monday] == [
        "Class with Hermione Granger",
        "Available for Rescheduling",
        "Class with Harry Potter",
    ]
    assert all(i.ref.student_id != "s3" for day in agenda.values() for i in day if i.type == ItemType.CLASS)


def test_items_sorted_by_start_time(users, class_items, slots):
    agenda = merge(class_items, availability_items(slots, "t1"), Role.TEACHER, "t1", users)

    for items in agenda.values():
        starts = [i.start_time for i in items]
        assert starts == sorted(starts)


def test_merge_is_deterministic(users, class_items, slots):
    avail = availability_items(slots, "t1")

    first = merge(class_items, avail, Role.TEACHER, "t1", users)
    second = merge(list(reversed(class_items)), list(reversed(avail)), Role.TEACHER, "t1", users)

    assert first == second
    assert list(first.keys()) == sorted(first.keys())


def test_availability_slot_shows_for_student_of_that_teacher(users, slots):
    only_a1 = [s for s in slots if s.id == "a1"]

    agenda = merge([], availability_items(only_a1, "t1"), Role.STUDENT, "s2", users)

    assert list(agenda.keys()) == [date(2025, 4, 22)]
    assert len(agenda[date(2025, 4, 22)]) == 1
    assert agenda[date(2025, 4, 22)][0].type == ItemType.AVAILABILITY


def test_student_without_teacher_gets_no_availability(users, slots):
    users["s4"] = User(id="s4", name="Luna Lovegood", role=Role.STUDENT)

    agenda = merge([], availability_items(slots, "t1"), Role.STUDENT, "s4", users)

    assert agenda == {}


def test_unknown_teacher_name(users, slots):
    users["s5"] = User(id="s5", name="Neville", role=Role.STUDENT, teacher_id="t9")
    orphan = [AvailabilitySlot(id="x1", teacher_id="t9", date=date(2025, 4, 3), start_time="10:00", end_time="11:00")]

    agenda = merge([], availability_items(orphan, "t9"), Role.STUDENT, "s5", users)

    assert agenda[date(2025, 4, 3)][0].name == "Available Slot (with Unknown User)"


def test_build_agenda_has_every_day(users, class_items, slots):
    agenda = build_agenda(class_items, availability_items(slots, "t1"), Role.STUDENT, "s1", users,
                          APRIL_START, APRIL_END)

    assert len(agenda) == 30
    assert agenda[date(2025, 4, 1)] == []
    assert [i.id for i in agenda[date(2025, 4, 7)]] == ["a2", "c1"]
    assert [i.id for i in agenda[date(2025, 4, 22)]] == ["a1"]


def test_merge_does_not_rename_inputs(users, class_items):
    merge(class_items, [], Role.TEACHER, "t1", users)

    assert all(i.name == "Class" for i in class_items)
