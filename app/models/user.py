import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Boolean, DateTime, Integer, Float, Enum, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base, TimestampMixin, UUID
from app.schemas.base_schema import BloodType, UserRole


class User(TimestampMixin, Base):
    __tablename__ = "users"

    # --- Columns ---
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(),
        primary_key=True,
        default=uuid.uuid4,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=UserRole.USER,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # --- Donor profile ---
    blood_group: Mapped[BloodType] = mapped_column(
        Enum(
            BloodType,
            native_enum=False,
            length=3,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        index=True,
    )
    availability: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    last_donation_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    total_donations: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Snapshot only; recomputed from completed requests
    badges: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # --- Relationships ---
    hospital = relationship(
        "Hospital",
        back_populates="manager",
        uselist=False,
    )

    # --- Methods ---
    def __str__(self) -> str:
        return f"{self.name} ({self.email})"

    def has_role(self, role_name: str) -> bool:
        """Check if user has a given role"""
        return self.role == UserRole(role_name)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def hospital_id(self) -> Optional[uuid.UUID]:
        """Managed hospital id, if the relationship has been loaded."""
        hospital = self.__dict__.get("hospital")
        return hospital.id if hospital is not None else None

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
