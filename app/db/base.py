from datetime import datetime, timezone
import uuid as uuid_module

from sqlalchemy import TypeDecorator, String, DateTime
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import declarative_base, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo on the way back anyway."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UUID(TypeDecorator):
    """
    Platform-independent UUID type.

    Uses PostgreSQL's native UUID type when available,
    otherwise stores a 32-char hex string (no dashes) so that
    comparisons behave the same in SQLite and PostgreSQL.
    """

    impl = String(32)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(String(32))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return (
                value
                if isinstance(value, uuid_module.UUID)
                else uuid_module.UUID(str(value))
            )
        if isinstance(value, uuid_module.UUID):
            return value.hex
        if isinstance(value, str):
            return value.replace("-", "")
        return value

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid_module.UUID):
            return value
        if isinstance(value, str) and len(value) == 32:
            return uuid_module.UUID(hex=value)
        return uuid_module.UUID(str(value))


Base = declarative_base()


class TimestampMixin:
    """created_at / updated_at columns shared by every table."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
