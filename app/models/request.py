import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Float,
    ForeignKey,
    Enum,
    Text,
    Index,
    CheckConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from app.db.base import Base, TimestampMixin, UUID
from app.schemas.base_schema import BloodType
from app.schemas.request import RequestOrigin, RequestStatus, Urgency
from app.utils.exceptions import BloodRequestValidationError


def _enum_column(enum_cls, length: int):
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda e: [m.value for m in e],
    )


class BloodRequest(TimestampMixin, Base):
    """A request for blood raised either by a patient or by a hospital."""

    __tablename__ = "blood_requests"

    # --- Columns ---
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(),
        primary_key=True,
        default=uuid.uuid4,
        index=True,
    )
    patient_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    blood_group: Mapped[BloodType] = mapped_column(
        _enum_column(BloodType, 3), nullable=False, index=True
    )
    units_needed: Mapped[int] = mapped_column(Integer, nullable=False)
    urgency: Mapped[Urgency] = mapped_column(
        _enum_column(Urgency, 10), default=Urgency.NORMAL, nullable=False, index=True
    )
    hospital_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    hospital_address: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    required_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[RequestStatus] = mapped_column(
        _enum_column(RequestStatus, 12),
        default=RequestStatus.PENDING,
        nullable=False,
        index=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # --- Relationships ---
    requester_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    hospital_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(),
        ForeignKey("hospitals.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    donor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    requester = relationship("User", foreign_keys=[requester_id])
    donor = relationship("User", foreign_keys=[donor_id])
    hospital = relationship("Hospital", back_populates="blood_requests")

    # --- Validation Methods ---
    @validates("units_needed")
    def validate_units_needed(self, key, value):
        if value is None or not 1 <= int(value) <= 10:
            raise BloodRequestValidationError("Units needed must be between 1 and 10")
        return int(value)

    @validates("blood_group")
    def validate_blood_group(self, key, value):
        try:
            return BloodType(value)
        except ValueError:
            raise BloodRequestValidationError(f"Invalid blood group: {value}")

    @validates("urgency")
    def validate_urgency(self, key, value):
        try:
            return Urgency(value)
        except ValueError:
            raise BloodRequestValidationError(f"Invalid urgency: {value}")

    @validates("latitude")
    def validate_latitude(self, key, value):
        if value is not None and not -90 <= value <= 90:
            raise BloodRequestValidationError("Invalid latitude")
        return value

    @validates("longitude")
    def validate_longitude(self, key, value):
        if value is not None and not -180 <= value <= 180:
            raise BloodRequestValidationError("Invalid longitude")
        return value

    def validate_origin(self) -> None:
        """Exactly one of requester / hospital, plus what that origin needs."""
        if self.requester_id is None and self.hospital_id is None:
            raise BloodRequestValidationError(
                "Either requester or hospital must be provided"
            )
        if self.requester_id is not None and self.hospital_id is not None:
            raise BloodRequestValidationError(
                "Cannot have both requester and hospital"
            )
        if self.requester_id is not None:
            if self.latitude is None or self.longitude is None:
                raise BloodRequestValidationError(
                    "Please provide valid location coordinates"
                )
            if not self.hospital_name or not self.hospital_address:
                raise BloodRequestValidationError(
                    "Hospital name and address are required"
                )

    # --- Methods ---
    @property
    def origin(self) -> RequestOrigin:
        if self.hospital_id is not None:
            return RequestOrigin.HOSPITAL
        return RequestOrigin.REQUESTER

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in (RequestStatus.COMPLETED, RequestStatus.CANCELLED)

    def __repr__(self) -> str:
        return f"<BloodRequest(id={self.id}, blood_group={self.blood_group}, status={self.status})>"

    # --- Table Configuration ---
    __table_args__ = (
        CheckConstraint(
            "(requester_id IS NULL) <> (hospital_id IS NULL)",
            name="ck_blood_request_single_origin",
        ),
        CheckConstraint(
            "units_needed >= 1 AND units_needed <= 10",
            name="ck_blood_request_units_range",
        ),
        Index("idx_request_blood_status", "blood_group", "status"),
        Index("idx_request_status_urgency_created", "status", "urgency", "created_at"),
    )


@event.listens_for(BloodRequest, "before_insert")
@event.listens_for(BloodRequest, "before_update")
def _check_origin(mapper, connection, target: BloodRequest):
    target.validate_origin()
