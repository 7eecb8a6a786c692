import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.user import User
from app.schemas.request import BloodRequestResponse, RequestStatus
from app.schemas.stats_schema import Badge, DonationStats
from app.services.store import BloodRequestStore
from app.utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)

# (name, icon, description, threshold)
BADGE_DEFINITIONS = (
    ("First Donation", "first-donation", "Completed your first blood donation", 1),
    ("Life Saver", "life-saver", "Completed 3 blood donations", 3),
    ("Hero Donor", "hero-donor", "Completed 5 blood donations", 5),
    ("Champion", "champion", "Completed 10 blood donations", 10),
    ("Legend", "legend", "Completed 25 blood donations", 25),
)


def compute_badges(total_completed_donations: int) -> List[Badge]:
    """Every badge with ``earned`` set independently from one count."""
    total = max(int(total_completed_donations or 0), 0)
    return [
        Badge(
            name=name,
            icon=icon,
            description=description,
            threshold=threshold,
            earned=total >= threshold,
        )
        for name, icon, description, threshold in BADGE_DEFINITIONS
    ]


def earned_badge_names(total_completed_donations: int) -> List[str]:
    return [b.name for b in compute_badges(total_completed_donations) if b.earned]


class DonationStatsService:
    def __init__(self, db: AsyncSession, store: Optional[BloodRequestStore] = None):
        self.db = db
        self.store = store or BloodRequestStore(db)

    async def count_completed_donations(self, user_id: UUID) -> int:
        return await self.store.count_requests(
            donor_id=user_id, status=RequestStatus.COMPLETED
        )

    async def get_donation_stats(self, user_id: UUID) -> DonationStats:
        user = await self.store.find_user_by_id(user_id)
        if not user:
            raise NotFoundError("User", user_id)

        completed = await self.count_completed_donations(user_id)
        created = await self.store.count_requests(requester_id=user_id)
        recent = await self.store.recent_completed_donations(user_id, limit=5)

        return DonationStats(
            user_id=user_id,
            total_donations=completed,
            total_requests_created=created,
            recent_donations=[BloodRequestResponse.from_model(r) for r in recent],
            badges=compute_badges(completed),
        )

    async def refresh_badge_cache(self, user_id: UUID) -> List[Badge]:
        """Rewrite the user's badge snapshot from completed requests."""
        completed = await self.count_completed_donations(user_id)
        badges = compute_badges(completed)
        await self.store.update_user_badges(
            user_id, [badge.model_dump() for badge in badges]
        )
        return badges

    async def refresh_all_badge_caches(self) -> int:
        result = await self.db.execute(select(User.id))
        user_ids = [row[0] for row in result.all()]
        for user_id in user_ids:
            await self.refresh_badge_cache(user_id)
        logger.info(f"Refreshed badge snapshots for {len(user_ids)} users")
        return len(user_ids)
