from typing import Any, Dict, List, Optional, Union

from pydantic import Field, field_validator

from .common import StoreModel, RequestModel


class LocationStamp(StoreModel):
    lat: float = 0
    lng: float = 0
    distance: float = 0
    verified: bool = False
    skipped: bool = False


class Activity(StoreModel):
    item: str
    status: str = "done"


class Entry(StoreModel):
    sr: int
    location: str = ""
    count: Optional[Union[float, str]] = None
    status: Optional[str] = None
    station_type: Optional[str] = None
    bait_consumed: Optional[str] = None
    bait_replaced: Optional[str] = None
    condition: Optional[str] = None
    pest_activity: Optional[str] = None


class IPMRecord(StoreModel):
    key: str
    form_type: str
    project_key: str = ""
    user_key: str = ""
    date: str = ""
    time: Optional[str] = None
    remarks: Optional[str] = None
    created_at: Optional[int] = None
    # Attendance
    time_in: Optional[str] = None
    time_out: Optional[str] = None
    work: Optional[str] = None
    location: Optional[LocationStamp] = None
    # Insecticide
    chemical: Optional[str] = None
    qty: Optional[str] = None
    water: Optional[str] = None
    batch_number: Optional[str] = None
    remaining_qty: Optional[str] = None
    areas: Optional[List[str]] = None
    # Checklist
    activities: Optional[List[Activity]] = None
    # Generic / bait station rows
    entries: Optional[List[Entry]] = None
    # Bait station
    total_stations: Optional[int] = None
    active_stations: Optional[int] = None
    bait_used: Optional[str] = None
    bait_brand: Optional[str] = None
    # Signatures
    tech_signature: Optional[str] = None
    client_signature: Optional[str] = None
    supervisor_signature: Optional[str] = None
    # Custom form data
    custom_data: Optional[Dict[str, Any]] = None

    @field_validator("qty", "water", "remaining_qty", "bait_used", mode="before")
    @classmethod
    def number_to_text(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


class RecordSubmit(RequestModel):
    """Common header plus the type-specific fields of a built-in or custom form."""

    class Config:
        extra = "allow"

    form_type: str
    project_key: str
    date: Optional[str] = None
    time: Optional[str] = None
    remarks: str = ""
    tech_signature: str = ""
    client_signature: str = ""

    def payload(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class AttendanceSubmit(RequestModel):
    project_key: str
    date: Optional[str] = None
    time_in: Optional[str] = None
    time_out: str = ""
    work: str = ""
    remarks: str = ""
    tech_signature: str = ""
    client_signature: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    # set by the client when the position could not be obtained (denied|timeout|unsupported)
    location_error: Optional[str] = None


class LocationCheckRequest(RequestModel):
    project_key: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    location_error: Optional[str] = None


class SignatureRender(RequestModel):
    """Pen strokes captured client-side, each a list of [x, y] points."""

    strokes: List[List[List[float]]] = []
    value: str = ""
    width: int = Field(400, gt=0, le=2000)
    height: int = Field(150, gt=0, le=1000)
