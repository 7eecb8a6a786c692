"""Donor -> recipient red-cell compatibility.

One table serves both lookups: "which requests can this donor fulfil" reads
it forwards, "which donors can serve this request" scans it, so the two can
never disagree.
"""

from typing import Dict, FrozenSet, Optional, Union

from app.schemas.base_schema import BloodType

BloodTypeLike = Union[BloodType, str, None]

_O_NEG = BloodType.O_NEGATIVE
_O_POS = BloodType.O_POSITIVE
_A_NEG = BloodType.A_NEGATIVE
_A_POS = BloodType.A_POSITIVE
_B_NEG = BloodType.B_NEGATIVE
_B_POS = BloodType.B_POSITIVE
_AB_NEG = BloodType.AB_NEGATIVE
_AB_POS = BloodType.AB_POSITIVE

COMPATIBILITY: Dict[BloodType, FrozenSet[BloodType]] = {
    _O_NEG: frozenset({_O_NEG, _O_POS, _A_NEG, _A_POS, _B_NEG, _B_POS, _AB_NEG, _AB_POS}),
    _O_POS: frozenset({_O_POS, _A_POS, _B_POS, _AB_POS}),
    _A_NEG: frozenset({_A_NEG, _A_POS, _AB_NEG, _AB_POS}),
    _A_POS: frozenset({_A_POS, _AB_POS}),
    _B_NEG: frozenset({_B_NEG, _B_POS, _AB_NEG, _AB_POS}),
    _B_POS: frozenset({_B_POS, _AB_POS}),
    _AB_NEG: frozenset({_AB_NEG, _AB_POS}),
    _AB_POS: frozenset({_AB_POS}),
}


def to_blood_type(value: BloodTypeLike) -> Optional[BloodType]:
    """Coerce a wire token to ``BloodType``; unknown tokens give ``None``."""
    if value is None or isinstance(value, BloodType):
        return value
    try:
        return BloodType(str(value).strip().upper())
    except ValueError:
        return None


def compatible_recipients(donor_type: BloodTypeLike) -> FrozenSet[BloodType]:
    """Every blood type ``donor_type`` may donate to."""
    donor = to_blood_type(donor_type)
    if donor is None:
        return frozenset()
    return COMPATIBILITY[donor]


def is_compatible(donor_type: BloodTypeLike, request_type: BloodTypeLike) -> bool:
    recipient = to_blood_type(request_type)
    if recipient is None:
        return False
    return recipient in compatible_recipients(donor_type)


def compatible_donor_types(recipient_type: BloodTypeLike) -> FrozenSet[BloodType]:
    """Every donor type that may serve ``recipient_type``."""
    recipient = to_blood_type(recipient_type)
    if recipient is None:
        return frozenset()
    return frozenset(
        donor for donor, recipients in COMPATIBILITY.items() if recipient in recipients
    )
