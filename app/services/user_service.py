import logging
from typing import Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.models.user import User
from app.schemas.user import UserCreate
from app.services.stats_service import compute_badges
from app.utils.exceptions import NotFoundError
from app.utils.security import get_password_hash

logger = logging.getLogger(__name__)


class UserService:
    """Donor and hospital-manager accounts"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_user(self, user_data: UserCreate) -> User:
        email = user_data.email.strip().lower()

        result = await self.db.execute(
            select(User.id).where(User.email == email).limit(1)
        )
        if result.scalar_one_or_none():
            raise HTTPException(status_code=400, detail="Email already registered")

        created_user = User(
            email=email,
            name=user_data.name,
            password=get_password_hash(user_data.password),
            phone=user_data.phone,
            role=user_data.role,
            blood_group=user_data.blood_group,
            availability=True,
            is_active=True,
            total_donations=0,
            badges=[badge.model_dump() for badge in compute_badges(0)],
        )

        self.db.add(created_user)
        await self.db.commit()

        logger.info(f"Registered {created_user.role.value} account {created_user.id}")
        return await self.get_user(created_user.id)

    async def get_user(self, user_id: UUID) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.hospital))
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _update(self, user_id: UUID, **values) -> User:
        user = await self.get_user(user_id)
        if not user:
            raise NotFoundError("User", user_id)
        for key, value in values.items():
            setattr(user, key, value)
        await self.db.commit()
        return await self.get_user(user_id)

    async def set_availability(self, user_id: UUID, availability: bool) -> User:
        """Donors switch themselves on or off for matching."""
        return await self._update(user_id, availability=availability)

    async def set_location(self, user_id: UUID, latitude: float, longitude: float) -> User:
        return await self._update(user_id, latitude=latitude, longitude=longitude)
