"""
Attendance location verification.
Uses Haversine formula to calculate distance between the visitor and the project anchor.
"""
import enum
import math
from dataclasses import dataclass
from typing import Optional

from ..config import settings
from ..schemas.projects import Project


# Earth radius in meters
EARTH_RADIUS_M = 6371000


class LocationStatus(str, enum.Enum):
    ok = "ok"
    fail = "fail"
    skip = "skip"
    pending = "pending"


@dataclass
class LocationCheck:
    status: LocationStatus
    distance: float = 0
    lat: float = 0
    lng: float = 0
    radius: float = 0
    error: Optional[str] = None

    @property
    def can_save(self) -> bool:
        return self.status in (LocationStatus.ok, LocationStatus.skip)

    def to_stamp(self) -> dict:
        """Location block stored on an attendance record."""
        return {
            "lat": self.lat,
            "lng": self.lng,
            "distance": self.distance,
            "verified": self.status == LocationStatus.ok,
            "skipped": self.status == LocationStatus.skip,
        }


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points on Earth.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    # Convert to radians
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    # Haversine formula
    a = (
        math.sin(delta_phi / 2) ** 2 +
        math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def project_radius(project: Project) -> float:
    return float(project.radius or settings.geo_radius_m_default)


def gps_required(project: Project) -> bool:
    return bool(project.gps_enabled) and project.lat is not None and project.lng is not None


def check_location(
    project: Project,
    lat: Optional[float],
    lng: Optional[float],
    error: Optional[str] = None,
) -> LocationCheck:
    """
    Classify an attendance position against the project's anchor.

    Args:
        project: Project with optional lat/lng anchor, radius and gps_enabled flag
        lat: Visitor latitude (None when no fix was obtained)
        lng: Visitor longitude (None when no fix was obtained)
        error: Client-reported reason for a missing fix (denied|timeout|unsupported)

    Returns:
        LocationCheck with status skip (GPS not enforced for the project),
        pending (no position yet), ok (within radius) or fail (outside radius)
    """
    radius = project_radius(project)
    if not gps_required(project):
        return LocationCheck(status=LocationStatus.skip, radius=radius)
    if lat is None or lng is None:
        return LocationCheck(status=LocationStatus.pending, radius=radius, error=error)

    distance = haversine_distance(lat, lng, float(project.lat), float(project.lng))
    status = LocationStatus.ok if distance <= radius else LocationStatus.fail
    return LocationCheck(
        status=status,
        distance=round(distance),
        lat=lat,
        lng=lng,
        radius=radius,
    )
