from datetime import date
from typing import Dict, List

from fastapi import APIRouter, Depends, Query

from tutor_scheduler.api.deps import get_service
from tutor_scheduler.models.schemas import AgendaItem, Role
from tutor_scheduler.services.workflow import SchedulingService

router = APIRouter(prefix="/agenda", tags=["Agenda"])


@router.get("/", response_model=Dict[date, List[AgendaItem]])
async def get_agenda(
    viewer_role: Role = Query(..., alias="viewerRole"),
    viewer_id: str = Query(..., alias="viewerId"),
    start: date = Query(...),
    end: date = Query(...),
    service: SchedulingService = Depends(get_service),
):
    """
    Returns the calendar feed for a viewer.

    Keys are every date in [start, end] (YYYY-MM-DD); values are the
    classes and availability slots of that day, ordered by start time.
    """
    return service.get_agenda(viewer_role, viewer_id, start, end)
