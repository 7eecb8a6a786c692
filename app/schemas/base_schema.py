from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class BloodType(str, Enum):
    """Enum for valid blood types"""

    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"

    @classmethod
    def get_values(cls) -> List[str]:
        """Get all valid blood type values"""
        return [item.value for item in cls]


class UserRole(str, Enum):

    USER = "user"
    HOSPITAL = "hospital"
    ADMIN = "admin"


class BaseSchema(BaseModel):
    """Base schema for request bodies"""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
        from_attributes=True,
    )
