from typing import Annotated, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter, field_validator

from .common import StoreModel, RequestModel


FIELD_TYPES = ("text", "number", "select", "checkbox", "textarea", "date", "time", "signature", "table")


class FieldBase(StoreModel):
    id: str
    label: str = ""
    required: bool = False
    default_value: Optional[str] = None
    placeholder: Optional[str] = None


class TextField(FieldBase):
    type: Literal["text"] = "text"


class NumberField(FieldBase):
    type: Literal["number"] = "number"


class TextareaField(FieldBase):
    type: Literal["textarea"] = "textarea"


class DateField(FieldBase):
    type: Literal["date"] = "date"


class TimeField(FieldBase):
    type: Literal["time"] = "time"


class CheckboxField(FieldBase):
    type: Literal["checkbox"] = "checkbox"


class SignatureField(FieldBase):
    type: Literal["signature"] = "signature"


class SelectField(FieldBase):
    type: Literal["select"] = "select"
    options: List[str] = []


class TableField(FieldBase):
    type: Literal["table"] = "table"
    table_columns: List[str] = []


CustomFormField = Annotated[
    Union[
        TextField,
        NumberField,
        TextareaField,
        DateField,
        TimeField,
        CheckboxField,
        SignatureField,
        SelectField,
        TableField,
    ],
    Field(discriminator="type"),
]

field_adapter = TypeAdapter(CustomFormField)

FIELD_MODELS = {
    "text": TextField,
    "number": NumberField,
    "textarea": TextareaField,
    "date": DateField,
    "time": TimeField,
    "checkbox": CheckboxField,
    "signature": SignatureField,
    "select": SelectField,
    "table": TableField,
}


def field_keys(field_type: str) -> set:
    """Stored (camelCase) keys declared by the variant for field_type; empty if unknown."""
    model = FIELD_MODELS.get(field_type)
    if model is None:
        return set()
    return {info.alias or name for name, info in model.model_fields.items()}


def parse_field(data: dict) -> FieldBase:
    return field_adapter.validate_python(data)


class CustomForm(StoreModel):
    key: str
    name: str = ""
    icon: str = "file-alt"
    description: Optional[str] = None
    fields: List[CustomFormField] = []
    active: bool = True
    is_built_in: Optional[bool] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @field_validator("fields", mode="before")
    @classmethod
    def none_to_list(cls, v):
        return v or []


class CustomFormSave(RequestModel):
    name: str = ""
    icon: str = "file-alt"
    description: Optional[str] = ""
    fields: List[CustomFormField] = []
    active: bool = True


class BuiltinFormInfo(RequestModel):
    type: str
    name: str
    icon: str
    gps: bool = False
