from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from typing import Annotated, Optional
from uuid import UUID
from datetime import datetime
import re

from app.schemas.base_schema import BaseSchema


class HospitalCreate(BaseSchema):
    hospital_name: Annotated[str, StringConstraints(min_length=2, max_length=100)]
    address: Annotated[str, StringConstraints(min_length=2, max_length=200)]
    license_number: Annotated[str, StringConstraints(min_length=3, max_length=50)]
    contact_number: str
    city: Optional[Annotated[str, StringConstraints(max_length=100)]] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("contact_number")
    @classmethod
    def validate_contact_number(cls, v: str) -> str:
        if not re.fullmatch(r"[0-9]{10}", v):
            raise ValueError("Please provide a valid 10-digit contact number")
        return v


class HospitalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    manager_id: UUID
    hospital_name: str
    address: str
    license_number: str
    contact_number: str
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_verified: bool
    created_at: datetime
