from typing import Optional, Union

from pydantic import field_validator

from .common import StoreModel, RequestModel


class Project(StoreModel):
    key: str
    code: str = ""
    name: str = ""
    client: str = ""
    contact: Optional[str] = None
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius: Optional[float] = None
    gps_enabled: bool = False
    active: bool = True
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


class ProjectSave(RequestModel):
    code: str = ""
    name: str = ""
    client: str = ""
    contact: Optional[str] = ""
    address: Optional[str] = ""
    lat: Optional[Union[float, str]] = None
    lng: Optional[Union[float, str]] = None
    radius: Optional[Union[int, str]] = 50
    gps_enabled: bool = False
    active: bool = True

    @field_validator("code", "name", "client", mode="before")
    @classmethod
    def strip_text(cls, v):
        return str(v or "").strip()

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def parse_coordinate(cls, v):
        if v is None or v == "":
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    @field_validator("radius", mode="before")
    @classmethod
    def parse_radius(cls, v):
        try:
            r = int(float(v))
        except (TypeError, ValueError):
            return 50
        return r or 50
