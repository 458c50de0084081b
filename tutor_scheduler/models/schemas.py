from datetime import date, datetime
from enum import Enum
from typing import Annotated, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# "HH:mm", 24-hour, zero-padded. Fixed width, so string order is time order.
TimeOfDay = Annotated[str, Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")]


def day_of_week(day: date) -> int:
    """Weekday index with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


class CamelModel(BaseModel):
    """Python attributes in snake_case, wire format in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Role(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"


class ItemType(str, Enum):
    CLASS = "class"
    AVAILABILITY = "availability"


class UserCreate(CamelModel):
    name: str = Field(min_length=1)
    role: Role
    teacher_id: Optional[str] = None  # Only for students

    @model_validator(mode="after")
    def _teacher_link_for_students_only(self):
        if self.role == Role.TEACHER and self.teacher_id is not None:
            raise ValueError("teachers cannot be assigned a teacher")
        return self


class User(UserCreate):
    id: str


class ScheduleSlot(CamelModel):
    day_of_week: int = Field(ge=0, le=6)  # 0 (Sun) to 6 (Sat)
    start_time: TimeOfDay
    end_time: TimeOfDay

    @model_validator(mode="after")
    def _start_before_end(self):
        if self.start_time >= self.end_time:
            raise ValueError("endTime must be after startTime")
        return self


class ClassCreate(CamelModel):
    """
    Teacher-authored class commitment with one student.

    Recurring classes occur on every matching weekday in
    [start_date, end_date]. Non-recurring classes (booked reschedules)
    occur once, on start_date, and carry a single slot for that day.
    """
    student_id: str
    start_date: date
    end_date: date
    schedule_slots: List[ScheduleSlot] = Field(min_length=1)
    is_recurring: bool = True
    color: Optional[str] = None

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate cannot be before startDate")
        seen = set()
        for slot in self.schedule_slots:
            key = (slot.day_of_week, slot.start_time, slot.end_time)
            if key in seen:
                raise ValueError("scheduleSlots cannot contain the same slot twice")
            seen.add(key)
        if not self.is_recurring:
            if self.end_date != self.start_date:
                raise ValueError("a non-recurring class must start and end on the same date")
            if len(self.schedule_slots) != 1:
                raise ValueError("a non-recurring class must have exactly one schedule slot")
            if self.schedule_slots[0].day_of_week != day_of_week(self.start_date):
                raise ValueError("the schedule slot of a non-recurring class must fall on its date")
        return self


class ClassDefinition(ClassCreate):
    id: str


class AvailabilityCreate(CamelModel):
    teacher_id: str
    date: date
    start_time: TimeOfDay
    end_time: TimeOfDay
    color: Optional[str] = None

    @model_validator(mode="after")
    def _start_before_end(self):
        if self.start_time >= self.end_time:
            raise ValueError("endTime must be after startTime")
        return self


class AvailabilitySlot(AvailabilityCreate):
    id: str


class RescheduleRecord(CamelModel):
    id: str
    student_id: str
    original_class_date: date
    month_key: str
    rescheduled_at: datetime


class AgendaItem(CamelModel):
    id: str  # id of the originating class or availability slot
    name: str
    time: str  # "HH:mm - HH:mm"
    type: ItemType
    day: date
    ref: Union[ClassDefinition, AvailabilitySlot]

    @property
    def start_time(self) -> str:
        return self.time.split(" - ")[0]


AgendaSchedule = Dict[date, List[AgendaItem]]


class ClassOccurrenceRef(CamelModel):
    """
    One occurrence of a class: its date, plus the slot's start time when the
    class meets more than once that day.
    """
    class_id: str
    date: date
    start_time: Optional[TimeOfDay] = None


class CancelRequest(CamelModel):
    date: date
    start_time: Optional[TimeOfDay] = None


class RescheduleRequest(CamelModel):
    date: date
    start_time: Optional[TimeOfDay] = None
    availability_id: str


class RescheduleStatus(CamelModel):
    student_id: str
    month_key: str
    can_reschedule: bool
