import logging
from typing import Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.hospital import Hospital
from app.schemas.hospital import HospitalCreate

logger = logging.getLogger(__name__)


class HospitalService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_hospital(self, hospital_data: HospitalCreate, manager_id: UUID) -> Hospital:
        """Register the hospital a hospital account manages; one per account."""
        if await self.get_for_manager(manager_id):
            raise HTTPException(
                status_code=400, detail="This account already manages a hospital"
            )

        result = await self.db.execute(
            select(Hospital.id).where(
                Hospital.license_number == hospital_data.license_number
            )
        )
        if result.scalar_one_or_none():
            raise HTTPException(
                status_code=400, detail="Hospital with this license number already exists"
            )

        hospital = Hospital(**hospital_data.model_dump(), manager_id=manager_id)
        self.db.add(hospital)
        await self.db.commit()
        await self.db.refresh(hospital)

        logger.info(f"Hospital {hospital.id} registered by manager {manager_id}")
        return hospital

    async def get_for_manager(self, manager_id: UUID) -> Optional[Hospital]:
        result = await self.db.execute(
            select(Hospital).where(Hospital.manager_id == manager_id)
        )
        return result.scalar_one_or_none()
