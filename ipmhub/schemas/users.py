import enum
from typing import List, Optional

from pydantic import BaseModel, field_validator

from .common import StoreModel, RequestModel


class UserRole(str, enum.Enum):
    admin = "admin"
    staff = "staff"
    client = "client"


class User(StoreModel):
    key: str
    emp_id: Optional[str] = None
    name: str = ""
    username: str = ""
    password: str = ""
    role: UserRole = UserRole.staff
    projects: List[str] = []
    project_key: Optional[str] = None
    phone: Optional[str] = None
    active: bool = True
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @field_validator("projects", mode="before")
    @classmethod
    def none_to_list(cls, v):
        return v or []


class UserPublic(RequestModel):
    key: str
    emp_id: Optional[str] = None
    name: str
    username: str
    role: UserRole
    projects: List[str] = []
    project_key: Optional[str] = None
    phone: Optional[str] = None
    active: bool = True
    created_at: Optional[int] = None

    @classmethod
    def from_user(cls, u: User) -> "UserPublic":
        return cls(**u.model_dump(exclude={"password"}))


class StaffSave(RequestModel):
    emp_id: str = ""
    name: str = ""
    username: str = ""
    password: Optional[str] = None
    phone: Optional[str] = None
    projects: List[str] = []
    active: bool = True

    @field_validator("emp_id", "name", "username", mode="before")
    @classmethod
    def strip_text(cls, v):
        return str(v or "").strip()


class ClientSave(RequestModel):
    name: str = ""
    username: str = ""
    password: Optional[str] = None
    project_key: str = ""
    active: bool = True

    @field_validator("name", "username", "project_key", mode="before")
    @classmethod
    def strip_text(cls, v):
        return str(v or "").strip()


class ProfileUpdate(RequestModel):
    name: str = ""
    password: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserPublic
