from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.dependencies import get_db, get_request_service
from app.models.user import User
from app.schemas.base_schema import BloodType
from app.schemas.hospital import HospitalCreate, HospitalResponse
from app.schemas.request import (
    BloodRequestResponse,
    HospitalRequestCreate,
    RequestStatus,
    Urgency,
)
from app.services.hospital_service import HospitalService
from app.services.request import BloodRequestService
from app.services.state_machine import Actor
from app.utils.exceptions import NotFoundError
from app.utils.ip_address_finder import get_client_ip
from app.utils.logging_config import get_logger, log_audit_event, log_security_event
from app.utils.pagination import PaginatedResponse, PaginationParams, get_pagination_params
from app.utils.permission_checker import require_role

logger = get_logger(__name__)

router = APIRouter(
    prefix="/hospitals",
    tags=["hospitals"]
)


@router.post("", response_model=HospitalResponse, status_code=status.HTTP_201_CREATED)
async def create_hospital(
    hospital_data: HospitalCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role("hospital")),
):
    """Register the hospital managed by the calling hospital account."""
    hospital = await HospitalService(db).create_hospital(hospital_data, current_user.id)
    log_audit_event(
        action="create",
        resource_type="hospital",
        resource_id=str(hospital.id),
        new_values={"hospital_name": hospital.hospital_name},
        user_id=str(current_user.id),
    )
    return hospital


@router.get("/me", response_model=HospitalResponse)
async def get_my_hospital(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role("hospital")),
):
    hospital = await HospitalService(db).get_for_manager(current_user.id)
    if not hospital:
        raise NotFoundError("Hospital")
    return hospital


@router.post(
    "/requests",
    response_model=BloodRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_hospital_request(
    request_data: HospitalRequestCreate,
    request: Request,
    current_user: User = Depends(require_role("hospital")),
    service: BloodRequestService = Depends(get_request_service),
):
    """
    Raise a request on behalf of a patient. Hospital name, address and
    location default to the hospital profile.
    """
    actor = Actor.from_user(current_user)
    try:
        created = await service.create_request(request_data, actor)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(
            "Hospital request creation failed due to unexpected error",
            extra={
                "event_type": "hospital_request_creation_error",
                "current_user_id": str(current_user.id),
                "error": str(e),
            },
            exc_info=True,
        )
        log_security_event(
            event_type="hospital_request_creation_system_error",
            user_id=str(current_user.id),
            ip_address=get_client_ip(request),
            details={"error": str(e)},
        )
        raise HTTPException(status_code=500, detail="Internal server error during request creation")

    log_audit_event(
        action="create",
        resource_type="blood_request",
        resource_id=str(created.id),
        new_values={
            "origin": "hospital",
            "blood_group": created.blood_group.value,
            "units_needed": created.units_needed,
            "urgency": created.urgency.value,
        },
        user_id=str(current_user.id),
    )
    return BloodRequestResponse.from_model(created)


@router.get("/requests", response_model=PaginatedResponse[BloodRequestResponse])
async def list_hospital_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    blood_group: Optional[BloodType] = Query(None),
    urgency: Optional[Urgency] = Query(None),
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(require_role("hospital")),
    service: BloodRequestService = Depends(get_request_service),
):
    if current_user.hospital_id is None:
        raise NotFoundError("Hospital")
    return await service.list_hospital_requests(
        current_user.hospital_id,
        status=status_filter,
        blood_group=blood_group,
        urgency=urgency,
        page=pagination.page,
        page_size=pagination.page_size,
    )
