from fastapi import APIRouter, Depends

from tutor_scheduler.api.deps import get_service
from tutor_scheduler.models.schemas import AvailabilityCreate, AvailabilitySlot
from tutor_scheduler.services.workflow import SchedulingService

router = APIRouter(prefix="/availability", tags=["Availability"])


@router.post("/", response_model=AvailabilitySlot, status_code=201)
async def create_availability(data: AvailabilityCreate, service: SchedulingService = Depends(get_service)):
    """Opens a single dated slot students can reschedule into."""
    return service.create_availability(data)


@router.delete("/{slot_id}")
async def delete_availability(slot_id: str, service: SchedulingService = Depends(get_service)):
    service.delete_availability(slot_id)
    return {"status": "deleted", "id": slot_id}
