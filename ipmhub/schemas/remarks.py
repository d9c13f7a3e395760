from typing import Optional

from .common import StoreModel, RequestModel


class Remark(StoreModel):
    key: str
    text: str = ""
    user_key: Optional[str] = None
    project_key: Optional[str] = None
    created_at: Optional[int] = None
    read: bool = False


class RemarkCreate(RequestModel):
    text: str = ""


class RemarkView(RequestModel):
    key: str
    text: str
    user_key: Optional[str] = None
    project_key: Optional[str] = None
    user_name: str
    project_name: str
    created_at: Optional[int] = None
