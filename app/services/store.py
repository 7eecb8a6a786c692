import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, case, delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.models.hospital import Hospital
from app.models.request import BloodRequest
from app.models.user import User
from app.schemas.base_schema import BloodType, UserRole
from app.schemas.request import RequestStatus, Urgency

logger = logging.getLogger(__name__)

# critical before normal
URGENCY_ORDER = case((BloodRequest.urgency == Urgency.CRITICAL, 1), else_=0)


class BloodRequestStore:
    """Narrow persistence interface used by the lifecycle and matching code.

    Every status change goes through ``conditional_update_request_status`` so
    the write only lands if the row is still in the status the caller saw.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # --- Requests ---

    def _request_query(self):
        return select(BloodRequest).options(
            selectinload(BloodRequest.requester),
            selectinload(BloodRequest.donor),
            selectinload(BloodRequest.hospital),
        )

    async def find_request_by_id(
        self, request_id: UUID, refresh: bool = False
    ) -> Optional[BloodRequest]:
        query = self._request_query().where(BloodRequest.id == request_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def add_request(self, blood_request: BloodRequest) -> BloodRequest:
        self.db.add(blood_request)
        await self.db.flush()
        return await self.find_request_by_id(blood_request.id, refresh=True)

    async def conditional_update_request_status(
        self,
        request_id: UUID,
        expected_status: RequestStatus,
        values: Dict[str, Any],
    ) -> Optional[BloodRequest]:
        """Compare-and-swap on ``status``; ``None`` when another writer won."""
        stmt = (
            update(BloodRequest)
            .where(
                and_(
                    BloodRequest.id == request_id,
                    BloodRequest.status == expected_status,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            logger.info(
                f"Conditional update missed for request {request_id} "
                f"(expected status {RequestStatus(expected_status).value})"
            )
            return None
        return await self.find_request_by_id(request_id, refresh=True)

    async def delete_request(
        self, request_id: UUID, expected_status: RequestStatus = RequestStatus.PENDING
    ) -> bool:
        stmt = (
            delete(BloodRequest)
            .where(
                and_(
                    BloodRequest.id == request_id,
                    BloodRequest.status == expected_status,
                )
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    def _request_conditions(
        self,
        status: Optional[RequestStatus] = None,
        blood_groups: Optional[Iterable[BloodType]] = None,
        exclude_requester_id: Optional[UUID] = None,
        requester_id: Optional[UUID] = None,
        donor_id: Optional[UUID] = None,
        participant_id: Optional[UUID] = None,
        hospital_id: Optional[UUID] = None,
        urgency: Optional[Urgency] = None,
        require_location: bool = False,
    ) -> List:
        conditions = []
        if status is not None:
            conditions.append(BloodRequest.status == status)
        if blood_groups is not None:
            conditions.append(BloodRequest.blood_group.in_(list(blood_groups)))
        if exclude_requester_id is not None:
            conditions.append(
                or_(
                    BloodRequest.requester_id.is_(None),
                    BloodRequest.requester_id != exclude_requester_id,
                )
            )
        if requester_id is not None:
            conditions.append(BloodRequest.requester_id == requester_id)
        if donor_id is not None:
            conditions.append(BloodRequest.donor_id == donor_id)
        if participant_id is not None:
            conditions.append(
                or_(
                    BloodRequest.requester_id == participant_id,
                    BloodRequest.donor_id == participant_id,
                )
            )
        if hospital_id is not None:
            conditions.append(BloodRequest.hospital_id == hospital_id)
        if urgency is not None:
            conditions.append(BloodRequest.urgency == urgency)
        if require_location:
            conditions.append(BloodRequest.latitude.is_not(None))
            conditions.append(BloodRequest.longitude.is_not(None))
        return conditions

    async def list_requests(
        self,
        limit: Optional[int] = None,
        offset: int = 0,
        by_urgency: bool = False,
        **filters,
    ) -> Sequence[BloodRequest]:
        """Newest first, optionally with critical requests ahead of normal ones."""
        query = self._request_query().where(*self._request_conditions(**filters))
        if by_urgency:
            query = query.order_by(URGENCY_ORDER.desc(), BloodRequest.created_at.desc())
        else:
            query = query.order_by(BloodRequest.created_at.desc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return result.scalars().all()

    async def count_requests(self, **filters) -> int:
        result = await self.db.execute(
            select(func.count(BloodRequest.id)).where(*self._request_conditions(**filters))
        )
        return result.scalar_one()

    async def find_pending_requests(
        self,
        blood_groups: Optional[Iterable[BloodType]] = None,
        exclude_requester_id: Optional[UUID] = None,
    ) -> Sequence[BloodRequest]:
        """Located pending requests, the candidate set for proximity matching."""
        return await self.list_requests(
            status=RequestStatus.PENDING,
            blood_groups=blood_groups,
            exclude_requester_id=exclude_requester_id,
            require_location=True,
            by_urgency=True,
        )

    async def recent_completed_donations(
        self, donor_id: UUID, limit: int = 5
    ) -> Sequence[BloodRequest]:
        result = await self.db.execute(
            self._request_query()
            .where(
                BloodRequest.donor_id == donor_id,
                BloodRequest.status == RequestStatus.COMPLETED,
            )
            .order_by(BloodRequest.completed_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

    # --- Users ---

    async def find_user_by_id(self, user_id: UUID) -> Optional[User]:
        result = await self.db.execute(
            select(User).options(selectinload(User.hospital)).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def find_available_donors(
        self,
        blood_groups: Iterable[BloodType],
        exclude_user_ids: Iterable[UUID] = (),
    ) -> Sequence[User]:
        conditions = [
            User.availability.is_(True),
            User.is_active.is_(True),
            User.role == UserRole.USER,
            User.blood_group.in_(list(blood_groups)),
        ]
        excluded = [uid for uid in exclude_user_ids if uid is not None]
        if excluded:
            conditions.append(User.id.not_in(excluded))
        result = await self.db.execute(select(User).where(*conditions))
        return result.scalars().all()

    async def increment_user_donation_count(
        self, user_id: UUID, donated_at: datetime
    ) -> bool:
        """Atomic ``total_donations + 1`` so concurrent completions both count."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                total_donations=User.total_donations + 1,
                last_donation_date=donated_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def update_user_badges(self, user_id: UUID, badges: List[dict]) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(badges=badges)
            .execution_options(synchronize_session=False)
        )

    # --- Hospitals ---

    async def find_hospital_by_id(self, hospital_id: UUID) -> Optional[Hospital]:
        result = await self.db.execute(select(Hospital).where(Hospital.id == hospital_id))
        return result.scalar_one_or_none()
