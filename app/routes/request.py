from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    status,
    Query,
    Request,
    Response,
)
from uuid import UUID
from typing import List, Optional
import time
from app.models.user import User
from app.dependencies import get_request_service, get_stats_service
from app.schemas.request import (
    AcceptResponse,
    BloodRequestCancel,
    BloodRequestListResponse,
    BloodRequestResponse,
    BloodRequestStatusUpdate,
    BloodRequestUpdate,
    DonorMatchResponse,
    NearbyRequestResponse,
    RequesterRequestCreate,
    RequestOwnership,
    RequestStatus,
)
from app.schemas.stats_schema import DonationStats
from app.services.request import BloodRequestService
from app.services.state_machine import Actor
from app.services.stats_service import DonationStatsService
from app.utils.logging_config import (
    get_logger,
    log_security_event,
    log_audit_event,
    log_performance_metric
)
from app.utils.ip_address_finder import get_client_ip
from app.utils.permission_checker import get_current_actor
from app.utils.security import get_current_user

logger = get_logger(__name__)

router = APIRouter(
    prefix="/requests",
    tags=["requests"]
)


def _list_response(requests) -> BloodRequestListResponse:
    items = [BloodRequestResponse.from_model(r) for r in requests]
    return BloodRequestListResponse(items=items, count=len(items))


def _unexpected_error(action: str, error: Exception, request: Request, user_id: str, **details):
    logger.error(
        f"{action} failed due to unexpected error",
        extra={
            "event_type": f"{action}_error",
            "current_user_id": user_id,
            "error": str(error),
            **details,
        },
        exc_info=True
    )
    log_security_event(
        event_type=f"{action}_system_error",
        user_id=user_id,
        ip_address=get_client_ip(request),
        details={"error": str(error), **details},
    )
    return HTTPException(status_code=500, detail=f"Internal server error during {action.replace('_', ' ')}")


@router.post(
    "",
    response_model=BloodRequestResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_blood_request(
    request_data: RequesterRequestCreate,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: BloodRequestService = Depends(get_request_service),
):
    """
    Ask for blood at a named hospital. The caller becomes the requester;
    the request starts out `pending` and is visible to compatible donors.
    """
    start_time = time.time()
    current_user_id = str(actor.user_id)

    logger.info(
        "Blood request creation started",
        extra={
            "event_type": "blood_request_creation_attempt",
            "current_user_id": current_user_id,
            "blood_group": request_data.blood_group.value,
            "units_needed": request_data.units_needed,
            "urgency": request_data.urgency.value,
            "client_ip": get_client_ip(request)
        }
    )

    try:
        created = await service.create_request(request_data, actor)

        log_audit_event(
            action="create",
            resource_type="blood_request",
            resource_id=str(created.id),
            new_values={
                "blood_group": created.blood_group.value,
                "units_needed": created.units_needed,
                "urgency": created.urgency.value,
                "status": created.status.value,
            },
            user_id=current_user_id
        )

        duration = time.time() - start_time
        if duration > 2:
            log_performance_metric(
                operation="blood_request_creation",
                duration_seconds=duration,
                additional_metrics={"slow_operation": True}
            )

        return BloodRequestResponse.from_model(created)

    except HTTPException:
        raise
    except Exception as e:
        raise _unexpected_error(
            "blood_request_creation", e, request, current_user_id,
            blood_group=request_data.blood_group.value,
        )


@router.get("/all", response_model=BloodRequestListResponse)
async def list_all_requests(
    status_filter: RequestStatus = Query(RequestStatus.PENDING, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    compatible: bool = Query(False, description="Only requests my blood group can serve"),
    current_user: User = Depends(get_current_user),
    service: BloodRequestService = Depends(get_request_service),
):
    requests = await service.list_requests(
        current_user, status=status_filter, limit=limit, compatible=compatible
    )
    return _list_response(requests)


@router.get("/compatible", response_model=BloodRequestListResponse)
async def list_compatible_requests(
    status_filter: RequestStatus = Query(RequestStatus.PENDING, alias="status"),
    limit: int = Query(20, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    service: BloodRequestService = Depends(get_request_service),
):
    """Requests the caller could donate to, excluding their own."""
    requests = await service.list_compatible_requests(
        current_user, status=status_filter, limit=limit
    )
    return _list_response(requests)


@router.get("/nearby", response_model=List[NearbyRequestResponse])
async def list_nearby_requests(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0, description="Search radius in km"),
    current_user: User = Depends(get_current_user),
    service: BloodRequestService = Depends(get_request_service),
):
    """
    Compatible pending requests within `radius` km of the given point,
    critical first, then closest, then newest.
    """
    matches = await service.list_nearby_requests(
        current_user, latitude, longitude, radius_km=radius
    )
    logger.info(
        f"Nearby search returned {len(matches)} requests",
        extra={
            "event_type": "nearby_search",
            "current_user_id": str(current_user.id),
            "radius_km": radius,
        },
    )
    return [
        NearbyRequestResponse.from_model(m.item, distance_km=m.distance_km)
        for m in matches
    ]


@router.get("/my", response_model=BloodRequestListResponse)
async def list_my_requests(
    ownership: Optional[RequestOwnership] = Query(None, alias="type"),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    service: BloodRequestService = Depends(get_request_service),
):
    """Requests I created (`type=created`), accepted (`type=accepted`), or both."""
    requests = await service.list_my_requests(
        actor.user_id, ownership=ownership, status=status_filter
    )
    return _list_response(requests)


@router.get("/stats", response_model=DonationStats)
async def get_my_donation_stats(
    actor: Actor = Depends(get_current_actor),
    stats_service: DonationStatsService = Depends(get_stats_service),
):
    return await stats_service.get_donation_stats(actor.user_id)


@router.get("/{request_id}", response_model=BloodRequestResponse)
async def get_blood_request(
    request_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BloodRequestService = Depends(get_request_service),
):
    return BloodRequestResponse.from_model(await service.get_request(request_id))


@router.put("/{request_id}", response_model=BloodRequestResponse)
async def update_blood_request(
    request_id: UUID,
    update_data: BloodRequestUpdate,
    actor: Actor = Depends(get_current_actor),
    service: BloodRequestService = Depends(get_request_service),
):
    """Edit a pending request you raised."""
    updated = await service.update_request(request_id, update_data, actor)
    return BloodRequestResponse.from_model(updated)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blood_request(
    request_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: BloodRequestService = Depends(get_request_service),
):
    await service.delete_request(request_id, actor)
    log_audit_event(
        action="delete",
        resource_type="blood_request",
        resource_id=str(request_id),
        user_id=str(actor.user_id),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{request_id}/accept", response_model=AcceptResponse)
async def accept_blood_request(
    request_id: UUID,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: BloodRequestService = Depends(get_request_service),
):
    """
    Claim a pending request as its donor. Exactly one concurrent caller
    wins; the others get `409 request_unavailable`.
    """
    current_user_id = str(actor.user_id)
    logger.info(
        "Blood request accept attempt",
        extra={
            "event_type": "blood_request_accept_attempt",
            "current_user_id": current_user_id,
            "request_id": str(request_id),
        },
    )

    try:
        result = await service.accept_request(actor.user_id, request_id)
        return AcceptResponse(
            request=BloodRequestResponse.from_model(result.request),
            contact_details=result.contact_details,
        )

    except HTTPException as e:
        logger.info(
            f"Accept rejected for request {request_id}: {e.detail}",
            extra={
                "event_type": "blood_request_accept_rejected",
                "current_user_id": current_user_id,
                "status_code": e.status_code,
            },
        )
        raise
    except Exception as e:
        raise _unexpected_error(
            "blood_request_accept", e, request, current_user_id, request_id=str(request_id)
        )


@router.patch("/{request_id}/status", response_model=BloodRequestResponse)
async def update_request_status(
    request_id: UUID,
    status_update: BloodRequestStatusUpdate,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: BloodRequestService = Depends(get_request_service),
):
    """Move a request along its lifecycle; invalid moves return 409."""
    current_user_id = str(actor.user_id)
    try:
        updated = await service.transition(
            request_id,
            status_update.status,
            actor,
            reason=status_update.cancellation_reason,
        )
        return BloodRequestResponse.from_model(updated)

    except HTTPException:
        raise
    except Exception as e:
        raise _unexpected_error(
            "blood_request_status_update", e, request, current_user_id,
            request_id=str(request_id),
            requested_status=status_update.status.value,
        )


@router.post("/{request_id}/confirm", response_model=BloodRequestResponse)
async def confirm_blood_request(
    request_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: BloodRequestService = Depends(get_request_service),
):
    """The owning hospital confirms the matched donor."""
    return BloodRequestResponse.from_model(await service.confirm_request(request_id, actor))


@router.post("/{request_id}/complete", response_model=BloodRequestResponse)
async def complete_blood_request(
    request_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: BloodRequestService = Depends(get_request_service),
):
    return BloodRequestResponse.from_model(await service.complete_request(request_id, actor))


@router.post("/{request_id}/cancel", response_model=BloodRequestResponse)
async def cancel_blood_request(
    request_id: UUID,
    payload: Optional[BloodRequestCancel] = None,
    actor: Actor = Depends(get_current_actor),
    service: BloodRequestService = Depends(get_request_service),
):
    reason = payload.reason if payload else None
    return BloodRequestResponse.from_model(
        await service.cancel_request(request_id, actor, reason=reason)
    )


@router.get("/{request_id}/donors", response_model=List[DonorMatchResponse])
async def list_eligible_donors(
    request_id: UUID,
    radius: Optional[float] = Query(None, gt=0, description="Search radius in km"),
    actor: Actor = Depends(get_current_actor),
    service: BloodRequestService = Depends(get_request_service),
):
    """
    Available donors whose blood group can serve this request, closest first.

    When neither the request nor its hospital has coordinates, `radius` is
    ignored and every eligible donor is returned by name with no distance.
    """
    matches = await service.list_eligible_donors(request_id, actor, radius_km=radius)
    return [
        DonorMatchResponse(
            id=m.item.id,
            name=m.item.name,
            blood_group=m.item.blood_group,
            phone=m.item.phone,
            last_donation_date=m.item.last_donation_date,
            distance_km=m.distance_km,
        )
        for m in matches
    ]
