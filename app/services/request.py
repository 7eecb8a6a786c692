import logging
from dataclasses import dataclass
from math import ceil
from typing import List, Optional, Sequence
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.base import utcnow
from app.models.request import BloodRequest
from app.models.user import User
from app.schemas.base_schema import BloodType, UserRole
from app.schemas.request import (
    BloodRequestCreate,
    BloodRequestResponse,
    BloodRequestUpdate,
    ContactDetails,
    HospitalRequestCreate,
    RequestOwnership,
    RequestStatus,
    Urgency,
)
from app.services.compatibility import (
    compatible_donor_types,
    compatible_recipients,
    is_compatible,
)
from app.services.proximity import NearbyMatch, nearby_donors, nearby_requests
from app.services.state_machine import (
    Actor,
    is_requester,
    plan_transition,
)
from app.services.stats_service import DonationStatsService
from app.services.store import BloodRequestStore
from app.utils.exceptions import (
    DonorUnavailableError,
    IncompatibleBloodTypeError,
    NotFoundError,
    RequestUnavailableError,
    UnauthorizedActionError,
)
from app.utils.logging_config import log_audit_event
from app.utils.pagination import PaginatedResponse
from app.utils.performance_monitor import performance_monitor

logger = logging.getLogger(__name__)


@dataclass
class AcceptResult:
    request: BloodRequest
    contact_details: ContactDetails


class BloodRequestService:
    """Request lifecycle, donor matching and the atomic accept."""

    def __init__(self, db: AsyncSession, store: Optional[BloodRequestStore] = None):
        self.db = db
        self.store = store or BloodRequestStore(db)
        self.stats = DonationStatsService(db, store=self.store)

    async def _commit(self, operation: str, request_id=None) -> None:
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(
                f"Failed to commit {operation} for request {request_id}: {str(e)}",
                exc_info=True,
            )
            raise HTTPException(status_code=500, detail=f"Failed to {operation}")

    async def _get_or_404(self, request_id: UUID) -> BloodRequest:
        request = await self.store.find_request_by_id(request_id)
        if not request:
            raise NotFoundError("Blood request", request_id)
        return request

    # --- Creation & edits ---

    @performance_monitor
    async def create_request(
        self, data: BloodRequestCreate, actor: Actor
    ) -> BloodRequest:
        """Persist a new pending request for the requester or hospital variant."""
        if isinstance(data, HospitalRequestCreate):
            if actor.role != UserRole.HOSPITAL or actor.hospital_id is None:
                raise UnauthorizedActionError(
                    "Only hospital accounts with a registered hospital can raise hospital requests"
                )
            hospital = await self.store.find_hospital_by_id(actor.hospital_id)
            if not hospital:
                raise NotFoundError("Hospital", actor.hospital_id)
            origin_fields = {
                "hospital_id": hospital.id,
                "patient_name": data.patient_name,
                "hospital_name": data.hospital_name or hospital.hospital_name,
                "hospital_address": data.hospital_address or hospital.address,
                "latitude": data.location.latitude if data.location else hospital.latitude,
                "longitude": data.location.longitude if data.location else hospital.longitude,
            }
        else:
            origin_fields = {
                "requester_id": actor.user_id,
                "hospital_name": data.hospital_name,
                "hospital_address": data.hospital_address,
                "latitude": data.location.latitude,
                "longitude": data.location.longitude,
            }

        blood_request = BloodRequest(
            blood_group=data.blood_group,
            units_needed=data.units_needed,
            urgency=data.urgency,
            required_date=data.required_date,
            notes=data.notes,
            status=RequestStatus.PENDING,
            **origin_fields,
        )
        blood_request.validate_origin()

        try:
            created = await self.store.add_request(blood_request)
        except HTTPException:
            await self.db.rollback()
            raise
        await self._commit("create request", blood_request.id)

        logger.info(
            f"Blood request {created.id} created ({created.origin.value}, "
            f"{created.blood_group.value} x{created.units_needed}, {created.urgency.value})"
        )
        return created

    async def get_request(self, request_id: UUID) -> BloodRequest:
        return await self._get_or_404(request_id)

    async def update_request(
        self, request_id: UUID, data: BloodRequestUpdate, actor: Actor
    ) -> BloodRequest:
        """Edit a request; only the requester, only while pending."""
        request = await self._get_or_404(request_id)
        if not is_requester(request, actor):
            raise UnauthorizedActionError("Not authorized to update this request")
        if request.status != RequestStatus.PENDING:
            raise RequestUnavailableError("Only pending requests can be updated")

        changes = data.model_dump(exclude_unset=True)
        location = changes.pop("location", None)
        if location is not None:
            changes["latitude"] = location["latitude"]
            changes["longitude"] = location["longitude"]
        if request.requester_id is not None:
            for required in ("hospital_name", "hospital_address"):
                if required in changes and not changes[required]:
                    changes.pop(required)
        changes["updated_at"] = utcnow()

        updated = await self.store.conditional_update_request_status(
            request_id, RequestStatus.PENDING, changes
        )
        if updated is None:
            await self.db.rollback()
            raise RequestUnavailableError("Only pending requests can be updated")
        await self._commit("update request", request_id)

        log_audit_event(
            action="update",
            resource_type="blood_request",
            resource_id=str(request_id),
            new_values={k: str(v) for k, v in changes.items()},
            user_id=str(actor.user_id),
        )
        return updated

    async def delete_request(self, request_id: UUID, actor: Actor) -> None:
        """Withdraw a request before any donor has engaged with it."""
        request = await self._get_or_404(request_id)
        if not is_requester(request, actor):
            raise UnauthorizedActionError("Not authorized to delete this request")
        if request.status != RequestStatus.PENDING:
            raise RequestUnavailableError("Only pending requests can be deleted")

        deleted = await self.store.delete_request(request_id, RequestStatus.PENDING)
        if not deleted:
            await self.db.rollback()
            raise RequestUnavailableError("Only pending requests can be deleted")
        await self._commit("delete request", request_id)
        logger.info(f"Request {request_id} deleted successfully")

    # --- Discovery ---

    async def list_requests(
        self,
        user: User,
        status: RequestStatus = RequestStatus.PENDING,
        limit: int = 50,
        compatible: bool = False,
    ) -> Sequence[BloodRequest]:
        """All requests in ``status``, critical first, then newest."""
        filters = {}
        if compatible:
            filters["blood_groups"] = compatible_recipients(user.blood_group)
            filters["exclude_requester_id"] = user.id
        return await self.store.list_requests(
            status=status, limit=limit, by_urgency=True, **filters
        )

    async def list_compatible_requests(
        self,
        user: User,
        status: RequestStatus = RequestStatus.PENDING,
        limit: int = 20,
    ) -> Sequence[BloodRequest]:
        return await self.list_requests(user, status=status, limit=limit, compatible=True)

    @performance_monitor
    async def list_nearby_requests(
        self,
        user: User,
        latitude: float,
        longitude: float,
        radius_km: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[NearbyMatch]:
        """Compatible pending requests around a donor, in matcher order."""
        radius = radius_km if radius_km is not None else settings.DEFAULT_SEARCH_RADIUS_KM
        radius = min(radius, settings.MAX_SEARCH_RADIUS_KM)
        limit = limit or settings.NEARBY_RESULT_LIMIT

        candidates = await self.store.find_pending_requests(
            blood_groups=compatible_recipients(user.blood_group),
            exclude_requester_id=user.id,
        )
        matches = nearby_requests(latitude, longitude, radius, candidates, donor_id=user.id)
        return matches[:limit]

    async def list_my_requests(
        self,
        user_id: UUID,
        ownership: Optional[RequestOwnership] = None,
        status: Optional[RequestStatus] = None,
    ) -> Sequence[BloodRequest]:
        if ownership == RequestOwnership.CREATED:
            return await self.store.list_requests(requester_id=user_id, status=status)
        if ownership == RequestOwnership.ACCEPTED:
            return await self.store.list_requests(donor_id=user_id, status=status)
        return await self.store.list_requests(participant_id=user_id, status=status)

    async def list_hospital_requests(
        self,
        hospital_id: UUID,
        status: Optional[RequestStatus] = None,
        blood_group: Optional[BloodType] = None,
        urgency: Optional[Urgency] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> PaginatedResponse[BloodRequestResponse]:
        filters = {
            "hospital_id": hospital_id,
            "status": status,
            "blood_groups": [blood_group] if blood_group else None,
            "urgency": urgency,
        }
        total = await self.store.count_requests(**filters)
        items = await self.store.list_requests(
            limit=page_size, offset=(page - 1) * page_size, **filters
        )
        total_pages = ceil(total / page_size) if total else 0
        return PaginatedResponse[BloodRequestResponse](
            items=[BloodRequestResponse.from_model(r) for r in items],
            total_items=total,
            total_pages=total_pages,
            current_page=page,
            page_size=page_size,
            has_next=page < total_pages,
            has_prev=page > 1,
        )

    async def list_eligible_donors(
        self,
        request_id: UUID,
        actor: Actor,
        radius_km: Optional[float] = None,
    ) -> List[NearbyMatch]:
        """Available compatible donors for a request, closest first when located."""
        request = await self._get_or_404(request_id)
        if not (is_requester(request, actor) or actor.is_admin):
            raise UnauthorizedActionError("Not authorized to view donors for this request")

        donors = await self.store.find_available_donors(
            compatible_donor_types(request.blood_group),
            exclude_user_ids=[request.requester_id],
        )
        donors = [d for d in donors if is_compatible(d.blood_group, request.blood_group)]

        lat, lng = request.latitude, request.longitude
        if not request.has_location and request.hospital is not None:
            lat, lng = request.hospital.latitude, request.hospital.longitude
        if lat is None or lng is None:
            return [NearbyMatch(item=d, distance=None) for d in sorted(donors, key=lambda d: d.name)]

        radius = radius_km if radius_km is not None else settings.DEFAULT_SEARCH_RADIUS_KM
        return nearby_donors(lat, lng, min(radius, settings.MAX_SEARCH_RADIUS_KM), donors)

    # --- Lifecycle ---

    @performance_monitor
    async def accept_request(self, donor_id: UUID, request_id: UUID) -> AcceptResult:
        """Claim a pending request for a donor.

        Checks run in a fixed order (exists, pending, donor available,
        compatible) and the claim itself is a compare-and-swap on
        ``status == pending``: if another donor got there first the update
        matches nothing and ``RequestUnavailableError`` is raised.
        """
        request = await self._get_or_404(request_id)

        if request.status != RequestStatus.PENDING:
            raise RequestUnavailableError("This request is no longer available")

        donor = await self.store.find_user_by_id(donor_id)
        if not donor:
            raise NotFoundError("Donor", donor_id)
        if not donor.availability:
            raise DonorUnavailableError()
        if not is_compatible(donor.blood_group, request.blood_group):
            raise IncompatibleBloodTypeError()

        actor = Actor.from_user(donor)
        values = plan_transition(request, RequestStatus.ACCEPTED, actor)

        claimed = await self.store.conditional_update_request_status(
            request_id, RequestStatus.PENDING, values
        )
        if claimed is None:
            await self.db.rollback()
            logger.warning(
                f"Donor {donor_id} lost the race for request {request_id}"
            )
            raise RequestUnavailableError("This request is no longer available")
        await self._commit("accept request", request_id)

        log_audit_event(
            action="accept",
            resource_type="blood_request",
            resource_id=str(request_id),
            old_values={"status": RequestStatus.PENDING.value},
            new_values={"status": RequestStatus.ACCEPTED.value, "donor_id": str(donor_id)},
            user_id=str(donor_id),
        )
        return AcceptResult(request=claimed, contact_details=self.contact_details(claimed))

    @staticmethod
    def contact_details(request: BloodRequest) -> ContactDetails:
        loaded = request.__dict__
        hospital = loaded.get("hospital")
        requester = loaded.get("requester")

        details = ContactDetails(
            hospital_name=request.hospital_name,
            hospital_address=request.hospital_address,
        )
        if hospital is not None:
            details.hospital_name = details.hospital_name or hospital.hospital_name
            details.hospital_address = details.hospital_address or hospital.address
            details.requester_name = hospital.hospital_name
            details.requester_phone = hospital.contact_number
        if requester is not None:
            details.requester_name = requester.name
            details.requester_phone = requester.phone
        return details

    @performance_monitor
    async def transition(
        self,
        request_id: UUID,
        target: RequestStatus,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> BloodRequest:
        """Move a request to ``target`` if the graph and the actor allow it."""
        target = RequestStatus(target)
        if target == RequestStatus.ACCEPTED:
            result = await self.accept_request(actor.user_id, request_id)
            return result.request

        request = await self._get_or_404(request_id)
        previous = request.status
        values = plan_transition(request, target, actor, reason=reason)

        updated = await self.store.conditional_update_request_status(
            request_id, previous, values
        )
        if updated is None:
            await self.db.rollback()
            raise RequestUnavailableError(
                "This request changed while you were updating it; reload and try again"
            )

        if target == RequestStatus.COMPLETED and updated.donor_id is not None:
            await self.store.increment_user_donation_count(
                updated.donor_id, values["completed_at"]
            )
            await self.stats.refresh_badge_cache(updated.donor_id)

        await self._commit(f"move request to {target.value}", request_id)

        log_audit_event(
            action="status_change",
            resource_type="blood_request",
            resource_id=str(request_id),
            old_values={"status": RequestStatus(previous).value},
            new_values={"status": target.value},
            user_id=str(actor.user_id),
        )
        logger.info(
            f"Request {request_id} moved {RequestStatus(previous).value} -> {target.value}"
        )
        return updated

    async def mark_on_the_way(self, request_id: UUID, actor: Actor) -> BloodRequest:
        return await self.transition(request_id, RequestStatus.ON_THE_WAY, actor)

    async def confirm_request(self, request_id: UUID, actor: Actor) -> BloodRequest:
        return await self.transition(request_id, RequestStatus.CONFIRMED, actor)

    async def complete_request(self, request_id: UUID, actor: Actor) -> BloodRequest:
        return await self.transition(request_id, RequestStatus.COMPLETED, actor)

    async def cancel_request(
        self, request_id: UUID, actor: Actor, reason: Optional[str] = None
    ) -> BloodRequest:
        return await self.transition(
            request_id, RequestStatus.CANCELLED, actor, reason=reason
        )
