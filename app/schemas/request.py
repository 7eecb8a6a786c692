from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator
from uuid import UUID
from datetime import datetime
from enum import Enum
from typing import Annotated, ClassVar, List, Literal, Optional, Union
import logging

from app.schemas.base_schema import BaseSchema, BloodType

logger = logging.getLogger(__name__)


class RequestStatus(str, Enum):

    PENDING = "pending"
    ACCEPTED = "accepted"
    ON_THE_WAY = "on_the_way"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Urgency(str, Enum):

    NORMAL = "normal"
    CRITICAL = "critical"

    @classmethod
    def _missing_(cls, value):
        # Legacy hospital tokens
        if isinstance(value, str):
            legacy = value.strip().lower()
            if legacy == "high":
                return cls.CRITICAL
            if legacy in ("low", "medium"):
                return cls.NORMAL
        return None

    @property
    def rank(self) -> int:
        return 1 if self is Urgency.CRITICAL else 0


class RequestOrigin(str, Enum):
    """Who raised the request"""

    REQUESTER = "requester"
    HOSPITAL = "hospital"


class RequestOwnership(str, Enum):
    """Filter for the caller's own requests"""

    CREATED = "created"
    ACCEPTED = "accepted"


class GeoPoint(BaseModel):
    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


HospitalName = Annotated[str, StringConstraints(min_length=1, max_length=100, strip_whitespace=True)]
HospitalAddress = Annotated[str, StringConstraints(min_length=1, max_length=200, strip_whitespace=True)]
Notes = Annotated[str, StringConstraints(max_length=500)]


class RequesterRequestCreate(BaseSchema):
    """A patient asking for blood at a named hospital."""

    origin: Literal["requester"] = "requester"
    blood_group: BloodType = Field(..., description="Blood group (e.g., A+, B-, O+, AB-)")
    units_needed: int = Field(..., ge=1, le=10, description="Units needed (1-10)")
    urgency: Urgency = Field(Urgency.NORMAL, description="normal or critical")
    hospital_name: HospitalName
    hospital_address: HospitalAddress
    location: GeoPoint = Field(..., description="Where the blood is needed")
    required_date: Optional[datetime] = None
    notes: Optional[Notes] = None


class HospitalRequestCreate(BaseSchema):
    """A hospital asking for blood for one of its patients."""

    origin: Literal["hospital"] = "hospital"
    patient_name: Optional[Annotated[str, StringConstraints(max_length=100)]] = None
    blood_group: BloodType
    units_needed: int = Field(1, ge=1, le=10)
    urgency: Urgency = Urgency.NORMAL
    hospital_name: Optional[HospitalName] = None
    hospital_address: Optional[HospitalAddress] = None
    location: Optional[GeoPoint] = None
    required_date: Optional[datetime] = None
    notes: Optional[Notes] = None


BloodRequestCreate = Annotated[
    Union[RequesterRequestCreate, HospitalRequestCreate],
    Field(discriminator="origin"),
]


class BloodRequestUpdate(BaseSchema):
    blood_group: Optional[BloodType] = None
    units_needed: Optional[int] = Field(None, ge=1, le=10)
    urgency: Optional[Urgency] = None
    hospital_name: Optional[HospitalName] = None
    hospital_address: Optional[HospitalAddress] = None
    location: Optional[GeoPoint] = None
    patient_name: Optional[Annotated[str, StringConstraints(max_length=100)]] = None
    required_date: Optional[datetime] = None
    notes: Optional[Notes] = None

    REQUIRED_FIELDS: ClassVar[tuple] = ("blood_group", "units_needed", "urgency")

    @model_validator(mode="after")
    def require_some_change(self):
        if not self.model_fields_set:
            raise ValueError("Provide at least one field to update")
        cleared = [
            name for name in self.REQUIRED_FIELDS
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class BloodRequestStatusUpdate(BaseSchema):
    status: RequestStatus
    cancellation_reason: Optional[Annotated[str, StringConstraints(max_length=200)]] = None


class BloodRequestCancel(BaseSchema):
    reason: Optional[Annotated[str, StringConstraints(max_length=200)]] = None


class BloodRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    origin: RequestOrigin
    requester_id: Optional[UUID] = None
    requester_name: Optional[str] = None
    hospital_id: Optional[UUID] = None
    patient_name: Optional[str] = None
    blood_group: BloodType
    units_needed: int
    urgency: Urgency
    hospital_name: Optional[str] = None
    hospital_address: Optional[str] = None
    location: Optional[GeoPoint] = None
    required_date: Optional[datetime] = None
    status: RequestStatus
    donor_id: Optional[UUID] = None
    donor_name: Optional[str] = None
    accepted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, blood_request, **extra) -> "BloodRequestResponse":
        """Build a response without triggering lazy loads.

        Related rows are read from ``__dict__`` only, so an unloaded
        relationship simply leaves the name empty.
        """
        loaded = blood_request.__dict__

        requester_name = None
        requester = loaded.get("requester")
        if requester is not None:
            requester_name = requester.__dict__.get("name")

        donor_name = None
        donor = loaded.get("donor")
        if donor is not None:
            donor_name = donor.__dict__.get("name")

        hospital_name = blood_request.hospital_name
        hospital_address = blood_request.hospital_address
        hospital = loaded.get("hospital")
        if hospital is not None:
            hospital_name = hospital_name or hospital.__dict__.get("hospital_name")
            hospital_address = hospital_address or hospital.__dict__.get("address")

        location = None
        if blood_request.latitude is not None and blood_request.longitude is not None:
            location = GeoPoint(
                latitude=blood_request.latitude, longitude=blood_request.longitude
            )

        return cls(
            id=blood_request.id,
            origin=blood_request.origin,
            requester_id=blood_request.requester_id,
            requester_name=requester_name,
            hospital_id=blood_request.hospital_id,
            patient_name=blood_request.patient_name,
            blood_group=blood_request.blood_group,
            units_needed=blood_request.units_needed,
            urgency=blood_request.urgency,
            hospital_name=hospital_name,
            hospital_address=hospital_address,
            location=location,
            required_date=blood_request.required_date,
            status=blood_request.status,
            donor_id=blood_request.donor_id,
            donor_name=donor_name,
            accepted_at=blood_request.accepted_at,
            confirmed_at=blood_request.confirmed_at,
            completed_at=blood_request.completed_at,
            cancelled_at=blood_request.cancelled_at,
            cancellation_reason=blood_request.cancellation_reason,
            notes=blood_request.notes,
            created_at=blood_request.created_at,
            updated_at=blood_request.updated_at,
            **extra,
        )


class NearbyRequestResponse(BloodRequestResponse):
    distance_km: float = Field(..., description="Distance from the donor, 1 decimal")


class ContactDetails(BaseModel):
    """What a donor needs right after claiming a request"""

    hospital_name: Optional[str] = None
    hospital_address: Optional[str] = None
    requester_name: Optional[str] = None
    requester_phone: Optional[str] = None


class AcceptResponse(BaseModel):
    request: BloodRequestResponse
    contact_details: ContactDetails
    message: str = "Blood request accepted successfully"


class DonorMatchResponse(BaseModel):
    id: UUID
    name: str
    blood_group: BloodType
    phone: Optional[str] = None
    last_donation_date: Optional[datetime] = None
    distance_km: Optional[float] = None


class BloodRequestListResponse(BaseModel):
    items: List[BloodRequestResponse]
    count: int
