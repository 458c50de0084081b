from typing import List, Optional

from fastapi import APIRouter, Depends

from tutor_scheduler.api.deps import get_service
from tutor_scheduler.models.schemas import Role, User, UserCreate
from tutor_scheduler.services.workflow import SchedulingService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/", response_model=User, status_code=201)
async def create_user(data: UserCreate, service: SchedulingService = Depends(get_service)):
    """
    Registers a teacher or a student in the scheduling directory.

    Students may be linked to their teacher through ``teacherId``; the
    agenda uses that link for scoping and naming.
    """
    return service.create_user(data)


@router.get("/", response_model=List[User])
async def list_users(role: Optional[Role] = None, service: SchedulingService = Depends(get_service)):
    return service.list_users(role)


@router.get("/{user_id}", response_model=User)
async def get_user(user_id: str, service: SchedulingService = Depends(get_service)):
    return service.get_user(user_id)
