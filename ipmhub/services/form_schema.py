"""
Form schema engine.

Built-in record shapes, the administrator-authored custom form schema and the
assembly of a submitted record from either of them.
"""
import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from ..config import settings
from ..schemas.forms import FIELD_TYPES, CustomForm, FieldBase, TableField, field_keys, parse_field
from ..schemas.records import IPMRecord
from .time_rules import epoch_ms, now_time


class FormValidationError(ValueError):
    pass


BUILTIN_FORMS: Dict[str, Dict[str, str]] = {
    "attendance": {"name": "Attendance", "short": "Attendance", "icon": "clipboard-user"},
    "insecticide": {"name": "Insecticide Log", "short": "Insecticide", "icon": "spray-can"},
    "gluebox": {"name": "Glue Box", "short": "Glue Box", "icon": "box-open"},
    "efk": {"name": "EFK Monitoring", "short": "EFK", "icon": "lightbulb"},
    "lizard": {"name": "Lizard Trapping", "short": "Lizard", "icon": "dragon"},
    "cat": {"name": "Cat Trapping", "short": "Cat", "icon": "cat"},
    "snake": {"name": "Snake Box", "short": "Snake", "icon": "worm"},
    "checklist": {"name": "IPM Checklist", "short": "Checklist", "icon": "tasks"},
    "baitstation": {"name": "Bait Station", "short": "Bait Station", "icon": "box"},
}

CHECK_ITEMS = [
    "Spray Treatment",
    "EFK Inspection",
    "Glue Box Check",
    "Bait Station Check",
    "Chemical Inventory",
    "Snake Box Check",
    "Documentation",
]

DEFAULT_AREAS = ["Outside", "Drain", "Washroom", "Office", "Storage"]

FORM_ICONS = [
    "file-alt", "tasks", "spray-can", "box", "clipboard-check", "tools", "bug", "search",
    "chart-bar", "list-alt", "clipboard-list", "bell", "flask", "shield-alt", "cog",
]


def is_builtin(form_type: str) -> bool:
    return form_type in BUILTIN_FORMS


def form_name(form_type: str, custom_forms: Optional[List[CustomForm]] = None) -> str:
    if form_type in BUILTIN_FORMS:
        return BUILTIN_FORMS[form_type]["name"]
    for f in custom_forms or []:
        if f.key == form_type:
            return f.name
    return form_type


def form_icon(form_type: str) -> str:
    return BUILTIN_FORMS.get(form_type, {}).get("icon", "file-alt")


def builtin_catalogue() -> List[Dict[str, Any]]:
    return [
        {"type": t, "name": info["name"], "icon": info["icon"], "gps": t == "attendance"}
        for t, info in BUILTIN_FORMS.items()
    ]


# ---------- AUTHORING ----------
class FormBuilder:
    """Editable state of one custom form while an administrator authors it."""

    def __init__(
        self,
        name: str = "",
        icon: str = "file-alt",
        description: str = "",
        fields: Optional[List[FieldBase]] = None,
        active: bool = True,
        key: Optional[str] = None,
    ):
        self.key = key
        self.name = name
        self.icon = icon
        self.description = description
        self.fields: List[FieldBase] = list(fields or [])
        self.active = active

    @classmethod
    def open(cls, form: Optional[CustomForm] = None) -> "FormBuilder":
        if form is None:
            return cls()
        fields = [parse_field(copy.deepcopy(f.to_store())) for f in form.fields]
        return cls(
            name=form.name,
            icon=form.icon or "file-alt",
            description=form.description or "",
            fields=fields,
            active=form.active,
            key=form.key,
        )

    def _new_id(self) -> str:
        taken = {f.id for f in self.fields}
        base = f"field_{epoch_ms()}"
        candidate, n = base, 1
        while candidate in taken:
            candidate = f"{base}_{n}"
            n += 1
        return candidate

    def add_field(self, field_type: str) -> FieldBase:
        if field_type not in FIELD_TYPES:
            raise FormValidationError(f"Unknown field type: {field_type}")
        data: Dict[str, Any] = {
            "id": self._new_id(),
            "type": field_type,
            "label": f"New {field_type} field",
            "required": False,
        }
        if field_type == "select":
            data["options"] = ["Option 1", "Option 2"]
        if field_type == "table":
            data["tableColumns"] = ["Column 1", "Column 2"]
        new_field = parse_field(data)
        self.fields.append(new_field)
        return new_field

    def update_field(self, index: int, **changes: Any) -> FieldBase:
        self._check_index(index)
        current = self.fields[index].to_store()
        changes = {to_camel(k) if "_" in k else k: v for k, v in changes.items()}
        changes.pop("id", None)
        merged = {**current, **changes}
        if merged.get("type") != current.get("type"):
            # a new variant keeps only the keys it declares
            declared = field_keys(merged.get("type"))
            merged = {k: v for k, v in merged.items() if k in declared}
        try:
            updated = parse_field(merged)
        except ValidationError as e:
            raise FormValidationError(str(e))
        self.fields[index] = updated
        return updated

    def move_field(self, index: int, direction: int) -> None:
        if direction not in (-1, 1):
            raise FormValidationError("direction must be -1 or 1")
        self._check_index(index)
        target = index + direction
        if target < 0 or target >= len(self.fields):
            return
        self.fields[index], self.fields[target] = self.fields[target], self.fields[index]

    def remove_field(self, index: int) -> None:
        self._check_index(index)
        del self.fields[index]

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= len(self.fields):
            raise FormValidationError(f"No field at position {index}")

    def to_payload(self) -> Dict[str, Any]:
        if not (self.name or "").strip():
            raise FormValidationError("Form name required")
        return {
            "name": self.name.strip(),
            "icon": self.icon or "file-alt",
            "description": self.description or "",
            "fields": [f.to_store() for f in self.fields],
            "active": self.active,
        }


# ---------- RENDERING ----------
@dataclass
class Control:
    field_id: str
    label: str
    kind: str
    input_type: Optional[str] = None
    required: bool = False
    placeholder: Optional[str] = None
    options: List[str] = field(default_factory=list)
    allow_empty: bool = True
    columns: List[str] = field(default_factory=list)
    initial: Any = ""


def _render_input(f: FieldBase) -> Control:
    return Control(f.id, f.label, "input", input_type=f.type, required=f.required,
                   placeholder=f.placeholder, initial=f.default_value or "")


def _render_textarea(f: FieldBase) -> Control:
    return Control(f.id, f.label, "textarea", required=f.required,
                   placeholder=f.placeholder, initial=f.default_value or "")


def _render_select(f: FieldBase) -> Control:
    return Control(f.id, f.label, "select", required=f.required, options=list(f.options),
                   allow_empty=not f.required, initial=f.default_value or "")


def _render_checkbox(f: FieldBase) -> Control:
    # a tick box is never mandatory
    return Control(f.id, f.label, "checkbox", required=False, initial=False)


def _render_signature(f: FieldBase) -> Control:
    return Control(f.id, f.label, "signature", required=f.required, initial="")


def _render_table(f: FieldBase) -> Control:
    return Control(f.id, f.label, "table", required=f.required, columns=list(f.table_columns),
                   initial=[blank_row(f)])


_RENDERERS: Dict[str, Callable[[FieldBase], Control]] = {
    "text": _render_input,
    "number": _render_input,
    "date": _render_input,
    "time": _render_input,
    "textarea": _render_textarea,
    "select": _render_select,
    "checkbox": _render_checkbox,
    "signature": _render_signature,
    "table": _render_table,
}

_missing = set(FIELD_TYPES) - set(_RENDERERS)
if _missing:
    raise RuntimeError(f"No renderer for field types: {sorted(_missing)}")


def render_control(f: FieldBase) -> Control:
    return _RENDERERS[f.type](f)


def render_controls(form: CustomForm) -> List[Control]:
    return [render_control(f) for f in form.fields]


def blank_row(f: TableField) -> Dict[str, str]:
    return {c: "" for c in f.table_columns}


# ---------- DATA ENTRY ----------
class FormEntry:
    """Values a staff member is filling into one custom form."""

    def __init__(self, form: CustomForm, custom_data: Optional[Dict[str, Any]] = None):
        self.form = form
        self.fields: Dict[str, FieldBase] = {f.id: f for f in form.fields}
        self.values: Dict[str, Any] = {}
        self.table_rows: Dict[str, List[Dict[str, str]]] = {}
        for f in form.fields:
            if f.type == "table":
                self.table_rows[f.id] = [blank_row(f)]
            elif f.type == "checkbox":
                self.values[f.id] = False
            else:
                self.values[f.id] = f.default_value or ""
        if custom_data:
            self.load(custom_data)

    def _field(self, field_id: str) -> FieldBase:
        f = self.fields.get(field_id)
        if f is None:
            raise FormValidationError(f"Unknown field: {field_id}")
        return f

    def load(self, custom_data: Dict[str, Any]) -> None:
        if not isinstance(custom_data, dict):
            raise FormValidationError("customData must be an object")
        for field_id, value in custom_data.items():
            if field_id == "tableRows":
                continue
            f = self.fields.get(field_id)
            if f is not None and f.type != "table":
                self.set_value(field_id, value)
        tables = custom_data.get("tableRows") or {}
        if not isinstance(tables, dict):
            raise FormValidationError("tableRows must map table fields to rows")
        for field_id, rows in tables.items():
            f = self.fields.get(field_id)
            if f is None or f.type != "table":
                continue
            if not isinstance(rows, list):
                raise FormValidationError(f"{f.label}: rows must be a list")
            loaded = []
            for row in rows:
                row = row or {}
                if not isinstance(row, dict):
                    raise FormValidationError(f"{f.label}: each row must be an object")
                loaded.append({c: _text(row.get(c)) for c in f.table_columns})
            self.table_rows[field_id] = loaded

    def set_value(self, field_id: str, value: Any) -> None:
        f = self._field(field_id)
        if f.type == "table":
            raise FormValidationError(f"{f.label}: use table rows")
        if f.type == "checkbox":
            self.values[field_id] = _truthy(value)
            return
        # entry values stay strings; numbers are not coerced here
        text = _text(value)
        if f.type == "select" and text and text not in f.options:
            raise FormValidationError(f"{f.label}: {text!r} is not one of the options")
        self.values[field_id] = text

    def add_table_row(self, field_id: str) -> None:
        f = self._table(field_id)
        self.table_rows.setdefault(field_id, []).append(blank_row(f))

    def remove_table_row(self, field_id: str, index: int) -> None:
        self._table(field_id)
        rows = self.table_rows.get(field_id, [])
        if 0 <= index < len(rows):
            del rows[index]

    def update_table_cell(self, field_id: str, index: int, column: str, value: Any) -> None:
        f = self._table(field_id)
        if column not in f.table_columns:
            raise FormValidationError(f"{f.label}: unknown column {column}")
        rows = self.table_rows.get(field_id, [])
        if not 0 <= index < len(rows):
            raise FormValidationError(f"{f.label}: no row {index}")
        rows[index][column] = _text(value)

    def _table(self, field_id: str) -> TableField:
        f = self._field(field_id)
        if f.type != "table":
            raise FormValidationError(f"{f.label} is not a table")
        return f

    def missing_required(self) -> List[str]:
        missing = []
        for f in self.form.fields:
            if not f.required or f.type == "checkbox":
                continue
            if f.type == "table":
                rows = self.table_rows.get(f.id, [])
                if not any((v or "").strip() for row in rows for v in row.values()):
                    missing.append(f.label)
            elif not _text(self.values.get(f.id)).strip():
                missing.append(f.label)
        return missing

    def custom_data(self, enforce_required: Optional[bool] = None) -> Dict[str, Any]:
        if enforce_required is None:
            enforce_required = settings.enforce_required_fields
        if enforce_required:
            missing = self.missing_required()
            if missing:
                raise FormValidationError("Required: " + ", ".join(missing))
        data: Dict[str, Any] = dict(self.values)
        data["tableRows"] = copy.deepcopy(self.table_rows)
        return data


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


# ---------- RECORD ASSEMBLY ----------
def checked_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Reject an assembled record the read model could not parse back."""
    try:
        IPMRecord.model_validate({"key": "_", **record})
    except ValidationError as e:
        err = e.errors()[0]
        where = ".".join(str(p) for p in err["loc"])
        raise FormValidationError(f"Invalid {where}: {err['msg']}")
    return record


def _cell(column: str, value: Any) -> Any:
    # count is the only numeric column of an entry row
    if column == "count" and isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return _text(value)


def _numbered(rows: List[Any], defaults: Dict[str, Any]) -> List[Dict[str, Any]]:
    out = []
    for i, row in enumerate(rows):
        row = row or {}
        if not isinstance(row, dict):
            raise FormValidationError(f"Entry {i + 1} must be an object")
        clean = {k: _cell(k, v) for k, v in row.items() if k != "sr"}
        out.append({"sr": i + 1, **defaults, **clean})
    return out


GENERIC_ENTRY = {"location": "", "count": 0, "status": "ok"}
BAIT_ENTRY = {
    "location": "",
    "stationType": "Indoor",
    "baitConsumed": "0",
    "baitReplaced": "0",
    "condition": "good",
    "pestActivity": "none",
}


def _checklist_activities(payload: Dict[str, Any]) -> List[Dict[str, str]]:
    given = payload.get("activities")
    if isinstance(given, list) and given:
        return [
            {"item": _text(a.get("item")), "status": _text(a.get("status") or "done")}
            for a in given if isinstance(a, dict) and a.get("item")
        ]
    statuses = payload.get("statuses") or []
    if not isinstance(statuses, list):
        raise FormValidationError("statuses must be a list")
    return [
        {"item": item, "status": _text(statuses[i]) if i < len(statuses) and statuses[i] else "done"}
        for i, item in enumerate(CHECK_ITEMS)
    ]


def assemble_record(
    form_type: str,
    header: Dict[str, Any],
    payload: Dict[str, Any],
    custom_form: Optional[CustomForm] = None,
) -> Dict[str, Any]:
    """
    Build the stored record for a non-attendance form.

    Args:
        form_type: Built-in type name or custom form key
        header: formType/projectKey/userKey/date/time/remarks/signature fields
        payload: Type-specific fields as submitted (camelCase)
        custom_form: The custom form when form_type is not built-in

    Raises:
        FormValidationError: required custom fields are empty or the payload
            does not fit the record model
    """
    record = dict(header)
    record["formType"] = form_type
    if form_type == "insecticide":
        areas = payload.get("areas")
        record.update({
            "chemical": _text(payload.get("chemical", "Deltamethrin")),
            "qty": _text(payload.get("qty", "50")),
            "water": _text(payload.get("water", "10")),
            "batchNumber": _text(payload.get("batchNumber")),
            "remainingQty": _text(payload.get("remainingQty")),
            "areas": [_text(a) for a in areas if _text(a).strip()] if isinstance(areas, list) else list(DEFAULT_AREAS),
        })
    elif form_type == "checklist":
        record.update({
            "timeIn": _text(payload.get("timeIn") or now_time()),
            "timeOut": _text(payload.get("timeOut")),
            "activities": _checklist_activities(payload),
        })
    elif form_type == "baitstation":
        entries = payload.get("entries")
        record.update({
            "baitBrand": _text(payload.get("baitBrand")),
            "totalStations": _to_int(payload.get("totalStations")),
            "activeStations": _to_int(payload.get("activeStations")),
            "baitUsed": _text(payload.get("baitUsed")),
            "entries": _numbered(entries if isinstance(entries, list) else [{}], BAIT_ENTRY),
        })
    elif custom_form is not None:
        entry = FormEntry(custom_form, payload.get("customData") or {})
        record["customData"] = entry.custom_data()
    else:
        entries = payload.get("entries")
        record["entries"] = _numbered(entries if isinstance(entries, list) else [{}], GENERIC_ENTRY)
    return checked_record(record)


def assemble_attendance(header: Dict[str, Any], payload: Dict[str, Any], location: Dict[str, Any]) -> Dict[str, Any]:
    record = dict(header)
    record.pop("time", None)
    record.update({
        "formType": "attendance",
        "timeIn": _text(payload.get("timeIn") or now_time()),
        "timeOut": _text(payload.get("timeOut")),
        "work": _text(payload.get("work")),
        "location": location,
    })
    return checked_record(record)
