"""Great-circle filtering and ordering of requests and donors."""

from dataclasses import dataclass
from math import atan2, cos, radians, sin, sqrt
from typing import Any, Iterable, List, Optional
from uuid import UUID

from app.schemas.request import RequestStatus, Urgency

EARTH_RADIUS_KM = 6371.0


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in km between two points on a spherical earth."""
    d_lat = radians(lat2 - lat1)
    d_lng = radians(lng2 - lng1)
    a = (
        sin(d_lat / 2) ** 2
        + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lng / 2) ** 2
    )
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


@dataclass(frozen=True)
class NearbyMatch:
    item: Any
    distance: Optional[float]

    @property
    def distance_km(self) -> Optional[float]:
        if self.distance is None:
            return None
        return round(self.distance, 1)


def _urgency_rank(value) -> int:
    try:
        return Urgency(value).rank
    except ValueError:
        return 0


def _created_key(created_at) -> float:
    # Newest first; undated rows sink to the end
    return -created_at.timestamp() if created_at is not None else 0.0


def nearby_requests(
    donor_lat: float,
    donor_lng: float,
    radius_km: float,
    candidates: Iterable[Any],
    donor_id: Optional[UUID] = None,
) -> List[NearbyMatch]:
    """Pending requests within ``radius_km``, most urgent then closest first.

    Ties on urgency and distance go to the newest request.
    """
    matches = []
    for request in candidates:
        if request.status != RequestStatus.PENDING:
            continue
        if donor_id is not None and request.requester_id == donor_id:
            continue
        if request.latitude is None or request.longitude is None:
            continue
        distance = haversine_distance(
            donor_lat, donor_lng, request.latitude, request.longitude
        )
        if distance <= radius_km:
            matches.append(NearbyMatch(item=request, distance=distance))

    matches.sort(
        key=lambda m: (
            -_urgency_rank(m.item.urgency),
            m.distance,
            _created_key(m.item.created_at),
        )
    )
    return matches


def nearby_donors(
    lat: float,
    lng: float,
    radius_km: float,
    donors: Iterable[Any],
) -> List[NearbyMatch]:
    """Donors with a known location within ``radius_km``, closest first."""
    matches = []
    for donor in donors:
        if donor.latitude is None or donor.longitude is None:
            continue
        distance = haversine_distance(lat, lng, donor.latitude, donor.longitude)
        if distance <= radius_km:
            matches.append(NearbyMatch(item=donor, distance=distance))
    matches.sort(key=lambda m: m.distance)
    return matches
