from pydantic import BaseModel, Field
from typing import List
from uuid import UUID

from app.schemas.request import BloodRequestResponse


class Badge(BaseModel):
    """Donor achievement derived from completed donations."""

    name: str
    icon: str
    description: str
    threshold: int = Field(..., ge=1)
    earned: bool = False


class DonationStats(BaseModel):
    user_id: UUID
    total_donations: int = Field(..., description="Completed requests as donor")
    total_requests_created: int
    recent_donations: List[BloodRequestResponse]
    badges: List[Badge]
