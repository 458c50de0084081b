from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query

from tutor_scheduler.api.deps import get_service
from tutor_scheduler.models.schemas import (
    CancelRequest,
    ClassCreate,
    ClassDefinition,
    ClassOccurrenceRef,
    RescheduleRecord,
    RescheduleRequest,
    RescheduleStatus,
)
from tutor_scheduler.services.workflow import SchedulingService

router = APIRouter(prefix="/classes", tags=["Classes"])


@router.get("/reschedules/{student_id}", response_model=List[RescheduleRecord])
async def list_reschedules(student_id: str, service: SchedulingService = Depends(get_service)):
    return service.list_reschedules(student_id)


@router.get("/reschedules/{student_id}/status", response_model=RescheduleStatus)
async def reschedule_status(student_id: str, class_date: date = Query(..., alias="date"),
                            service: SchedulingService = Depends(get_service)):
    """Tells the client whether to offer "Reschedule" for a class on ``date``."""
    return service.reschedule_status(student_id, class_date)


@router.post("/", response_model=ClassDefinition, status_code=201)
async def create_class(data: ClassCreate, service: SchedulingService = Depends(get_service)):
    return service.create_class(data)


@router.get("/{class_id}", response_model=ClassDefinition)
async def get_class(class_id: str, service: SchedulingService = Depends(get_service)):
    return service.get_class(class_id)


@router.put("/{class_id}", response_model=ClassDefinition)
async def update_class(class_id: str, data: ClassCreate, service: SchedulingService = Depends(get_service)):
    """Replaces the slots and date range of an existing class."""
    return service.update_class(class_id, data)


@router.delete("/{class_id}")
async def delete_class(class_id: str, service: SchedulingService = Depends(get_service)):
    service.delete_class(class_id)
    return {"status": "deleted", "id": class_id}


@router.post("/{class_id}/cancel")
async def cancel_class(class_id: str, req: CancelRequest, service: SchedulingService = Depends(get_service)):
    """
    Cancels the occurrence of a class on ``req.date``.

    Other occurrences of a recurring class stay scheduled. ``startTime``
    picks the occurrence when the class meets more than once that day.
    """
    service.cancel_class(ClassOccurrenceRef(class_id=class_id, date=req.date, start_time=req.start_time))
    return {"status": "cancelled", "id": class_id, "date": req.date}


@router.post("/{class_id}/reschedule", response_model=ClassDefinition)
async def reschedule_class(class_id: str, req: RescheduleRequest, service: SchedulingService = Depends(get_service)):
    """
    Moves the occurrence on ``req.date`` onto an availability slot.

    Returns the new one-off class. Students get one reschedule per calendar
    month; a second attempt answers 403 with code ``reschedule_quota_exceeded``.
    """
    ref = ClassOccurrenceRef(class_id=class_id, date=req.date, start_time=req.start_time)
    return service.reschedule_class(ref, req.availability_id)
