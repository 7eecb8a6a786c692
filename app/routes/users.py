from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db
from app.models.user import User
from app.schemas.user import (
    AvailabilityUpdate,
    LocationUpdate,
    UserCreate,
    UserResponse,
)
from app.services.user_service import UserService
from app.utils.logging_config import get_logger, log_audit_event
from app.utils.security import get_current_user

logger = get_logger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"]
)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED, summary="Create new user")
async def create_user(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """
    Create a new account:
    - **email**: must be unique
    - **password**: will be hashed
    - **blood_group**: donor blood group
    - **role**: `user` (donor/requester) or `hospital`
    """
    user = await UserService(db).create_user(user_data)
    log_audit_event(
        action="create",
        resource_type="user",
        resource_id=str(user.id),
        new_values={"role": user.role.value, "blood_group": user.blood_group.value},
        user_id=str(user.id),
    )
    return user


@router.get("/me", response_model=UserResponse, summary="Get current user")
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me/availability", response_model=UserResponse)
async def update_availability(
    payload: AvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = await UserService(db).set_availability(current_user.id, payload.availability)
    logger.info(
        f"User {current_user.id} availability set to {payload.availability}",
        extra={"event_type": "availability_updated"},
    )
    return user


@router.patch("/me/location", response_model=UserResponse)
async def update_location(
    payload: LocationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await UserService(db).set_location(
        current_user.id, payload.latitude, payload.longitude
    )
