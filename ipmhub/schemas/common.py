from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class StoreModel(BaseModel):
    """Entity as stored in the key-value tree (camelCase on the wire)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        # keep fields this version doesn't know about
        extra = "allow"

    def to_store(self) -> dict:
        data = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        data.pop("key", None)
        return data


class RequestModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"
