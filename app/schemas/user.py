from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    field_validator,
    ConfigDict,
    ValidationInfo,
    StringConstraints,
)
from typing import Optional, Annotated, List
from uuid import UUID
from datetime import datetime
import re

from app.schemas.base_schema import BaseSchema, BloodType, UserRole
from app.schemas.stats_schema import Badge


class UserBase(BaseSchema):
    email: EmailStr
    name: Annotated[
        str, StringConstraints(min_length=2, max_length=50, strip_whitespace=True)
    ]
    phone: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v.strip() == "":
            return None
        v = v.strip()
        # Keep a leading '+' and digits only
        if v.startswith("+"):
            cleaned = "+" + re.sub(r"[^\d]", "", v[1:])
        else:
            cleaned = re.sub(r"[^\d]", "", v)
        if re.fullmatch(r"\+?\d{7,15}", cleaned):
            return cleaned
        raise ValueError("Phone number must contain 7 to 15 digits")


class UserCreate(UserBase):
    password: Annotated[str, StringConstraints(min_length=6, max_length=128)]
    password_confirm: str
    blood_group: BloodType
    role: UserRole = Field(default=UserRole.USER, description="user or hospital")

    @field_validator("password_confirm")
    @classmethod
    def passwords_match(cls, v: str, values: ValidationInfo) -> str:
        if "password" in values.data and v != values.data["password"]:
            raise ValueError("passwords do not match")
        return v

    @field_validator("role")
    @classmethod
    def no_self_service_admin(cls, v: UserRole) -> UserRole:
        if v == UserRole.ADMIN:
            raise ValueError("admin accounts cannot be self-registered")
        return v


class UserLogin(BaseSchema):
    email: EmailStr
    password: str


class AvailabilityUpdate(BaseSchema):
    availability: bool


class LocationUpdate(BaseSchema):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: EmailStr
    phone: Optional[str] = None
    role: UserRole
    blood_group: BloodType
    availability: bool
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    last_donation_date: Optional[datetime] = None
    total_donations: int = 0
    badges: List[Badge] = []
    hospital_id: Optional[UUID] = None
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
