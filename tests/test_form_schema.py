import random

import pytest

from ipmhub.schemas.forms import FIELD_TYPES, CustomForm, parse_field
from ipmhub.services import form_schema
from ipmhub.services.form_schema import (
    CHECK_ITEMS,
    FormBuilder,
    FormEntry,
    FormValidationError,
    assemble_record,
    render_controls,
)


def _form(fields, key="f1", name="Fumigation"):
    return CustomForm(key=key, name=name, fields=[parse_field(f) for f in fields])


def _builder_with(n):
    b = FormBuilder(name="Test")
    for t in ("text", "number", "select", "table", "checkbox")[:n]:
        b.add_field(t)
    return b


def test_add_field_defaults():
    b = FormBuilder(name="x")
    select = b.add_field("select")
    table = b.add_field("table")
    assert select.label == "New select field"
    assert select.required is False
    assert select.options == ["Option 1", "Option 2"]
    assert table.table_columns == ["Column 1", "Column 2"]
    assert select.id.startswith("field_")


def test_field_ids_unique_within_same_millisecond(monkeypatch):
    monkeypatch.setattr(form_schema, "epoch_ms", lambda: 1700000000000)
    b = FormBuilder(name="x")
    ids = [b.add_field("text").id for _ in range(3)]
    assert ids == ["field_1700000000000", "field_1700000000000_1", "field_1700000000000_2"]


def test_unknown_field_type_rejected():
    with pytest.raises(FormValidationError):
        FormBuilder(name="x").add_field("slider")


def test_move_field_boundaries_are_noops():
    b = _builder_with(3)
    before = [f.id for f in b.fields]
    b.move_field(0, -1)
    b.move_field(2, 1)
    assert [f.id for f in b.fields] == before
    b.move_field(0, 1)
    assert [f.id for f in b.fields] == [before[1], before[0], before[2]]
    with pytest.raises(FormValidationError):
        b.move_field(0, 2)


def test_moves_are_always_a_permutation():
    b = _builder_with(5)
    original = sorted(f.id for f in b.fields)
    rng = random.Random(7)
    for _ in range(200):
        b.move_field(rng.randrange(len(b.fields)), rng.choice((-1, 1)))
        assert sorted(f.id for f in b.fields) == original


def test_update_field_revalidates_variant():
    b = _builder_with(4)
    updated = b.update_field(2, label="Method", required=True, options=["Fog", "Spray"])
    assert updated.options == ["Fog", "Spray"]
    assert updated.required is True
    assert b.fields[2].id == updated.id
    renamed = b.update_field(3, table_columns=["Room", "Count"])
    assert renamed.table_columns == ["Room", "Count"]


def test_remove_field():
    b = _builder_with(2)
    keep = b.fields[1].id
    b.remove_field(0)
    assert [f.id for f in b.fields] == [keep]
    with pytest.raises(FormValidationError):
        b.remove_field(5)


def test_form_name_required():
    b = FormBuilder(name="   ")
    with pytest.raises(FormValidationError, match="Form name required"):
        b.to_payload()


def test_builder_round_trip_through_store(ctx):
    b = _builder_with(5)
    b.update_field(0, required=True, placeholder="Area")
    key = ctx.save_custom_form(b.to_payload())
    reopened = FormBuilder.open(ctx.get_custom_form(key))
    assert [f.to_store() for f in reopened.fields] == [f.to_store() for f in b.fields]
    assert reopened.name == "Test"
    assert reopened.key == key


def test_open_deep_copies_fields(ctx):
    b = _builder_with(1)
    key = ctx.save_custom_form(b.to_payload())
    form = ctx.get_custom_form(key)
    reopened = FormBuilder.open(form)
    reopened.update_field(0, label="Changed")
    assert form.fields[0].label != "Changed"


def test_every_field_type_renders():
    fields = [{"id": f"f_{t}", "type": t, "label": t} for t in FIELD_TYPES]
    controls = {c.field_id: c for c in render_controls(_form(fields))}
    assert len(controls) == len(FIELD_TYPES)
    assert controls["f_number"].kind == "input"
    assert controls["f_number"].input_type == "number"
    assert controls["f_textarea"].kind == "textarea"
    assert controls["f_signature"].kind == "signature"


def test_select_and_checkbox_rendering_rules():
    form = _form([
        {"id": "s1", "type": "select", "label": "Optional", "options": ["a"]},
        {"id": "s2", "type": "select", "label": "Required", "options": ["a"], "required": True},
        {"id": "c1", "type": "checkbox", "label": "Sealed", "required": True},
        {"id": "t1", "type": "table", "label": "Doses", "tableColumns": ["Room", "Qty"]},
    ])
    controls = {c.field_id: c for c in render_controls(form)}
    assert controls["s1"].allow_empty is True
    assert controls["s2"].allow_empty is False
    assert controls["c1"].required is False
    assert controls["c1"].initial is False
    assert controls["t1"].initial == [{"Room": "", "Qty": ""}]


FUMIGATION = [
    {"id": "area", "type": "text", "label": "Area", "required": True},
    {"id": "sealed", "type": "checkbox", "label": "Sealed", "required": True},
    {"id": "doses", "type": "table", "label": "Doses", "tableColumns": ["Room", "Qty"], "required": True},
    {"id": "notes", "type": "textarea", "label": "Notes"},
]


def test_required_fields_enforced_except_checkbox():
    entry = FormEntry(_form(FUMIGATION))
    with pytest.raises(FormValidationError) as exc:
        entry.custom_data(enforce_required=True)
    assert "Area" in str(exc.value)
    assert "Doses" in str(exc.value)
    assert "Sealed" not in str(exc.value)


def test_table_counts_as_filled_when_any_cell_set():
    entry = FormEntry(_form(FUMIGATION))
    entry.set_value("area", "Store room")
    entry.add_table_row("doses")
    entry.update_table_cell("doses", 1, "Qty", "3")
    data = entry.custom_data(enforce_required=True)
    assert data["area"] == "Store room"
    assert data["sealed"] is False
    assert data["tableRows"]["doses"] == [{"Room": "", "Qty": ""}, {"Room": "", "Qty": "3"}]


def test_enforcement_can_be_disabled():
    data = FormEntry(_form(FUMIGATION)).custom_data(enforce_required=False)
    assert data["area"] == ""


def test_values_are_stored_as_text():
    entry = FormEntry(_form([{"id": "n", "type": "number", "label": "N"}]))
    entry.set_value("n", 12)
    assert entry.custom_data(enforce_required=False)["n"] == "12"


def test_table_rows_never_below_zero():
    entry = FormEntry(_form(FUMIGATION))
    entry.remove_table_row("doses", 0)
    entry.remove_table_row("doses", 0)
    assert entry.table_rows["doses"] == []
    with pytest.raises(FormValidationError):
        entry.update_table_cell("doses", 0, "Room", "x")


def test_unknown_field_and_column_rejected():
    entry = FormEntry(_form(FUMIGATION))
    with pytest.raises(FormValidationError):
        entry.set_value("ghost", "x")
    with pytest.raises(FormValidationError):
        entry.update_table_cell("doses", 0, "Colour", "x")


def test_entry_loads_saved_custom_data():
    saved = {"area": "Yard", "sealed": True, "tableRows": {"doses": [{"Room": "A", "Qty": 2}]}}
    entry = FormEntry(_form(FUMIGATION), saved)
    assert entry.values["sealed"] is True
    assert entry.table_rows["doses"] == [{"Room": "A", "Qty": "2"}]


HEADER = {"projectKey": "p1", "userKey": "u1", "date": "2024-03-05", "time": "10:00"}


def test_insecticide_defaults():
    rec = assemble_record("insecticide", HEADER, {})
    assert rec["chemical"] == "Deltamethrin"
    assert rec["qty"] == "50"
    assert rec["water"] == "10"
    assert rec["areas"] == ["Outside", "Drain", "Washroom", "Office", "Storage"]
    assert rec["formType"] == "insecticide"


def test_checklist_defaults_to_done():
    rec = assemble_record("checklist", HEADER, {"timeIn": "09:00", "statuses": ["pending"]})
    assert [a["item"] for a in rec["activities"]] == CHECK_ITEMS
    assert rec["activities"][0]["status"] == "pending"
    assert all(a["status"] == "done" for a in rec["activities"][1:])


def test_bait_station_coerces_counts_and_numbers_entries():
    rec = assemble_record("baitstation", HEADER, {
        "totalStations": "12",
        "activeStations": "abc",
        "entries": [{"location": "Gate"}, {"location": "Dock", "condition": "damaged"}],
    })
    assert rec["totalStations"] == 12
    assert rec["activeStations"] == 0
    assert [e["sr"] for e in rec["entries"]] == [1, 2]
    assert rec["entries"][0]["stationType"] == "Indoor"
    assert rec["entries"][1]["condition"] == "damaged"


def test_generic_entries_numbered_from_one():
    rec = assemble_record("gluebox", HEADER, {"entries": [{"location": "A", "count": 3}, {"location": "B", "sr": 9}]})
    assert [(e["sr"], e["location"], e["status"]) for e in rec["entries"]] == [(1, "A", "ok"), (2, "B", "ok")]
    assert "entries" in assemble_record("efk", HEADER, {})


def test_custom_record_carries_custom_data():
    form = _form([{"id": "area", "type": "text", "label": "Area", "required": True}], key="cf1")
    rec = assemble_record("cf1", HEADER, {"customData": {"area": "Kitchen"}}, custom_form=form)
    assert rec["customData"] == {"area": "Kitchen", "tableRows": {}}
    with pytest.raises(FormValidationError):
        assemble_record("cf1", HEADER, {"customData": {}}, custom_form=form)


def test_form_name_falls_back_to_type():
    assert form_schema.form_name("efk") == "EFK Monitoring"
    assert form_schema.form_name("unknown") == "unknown"
    assert form_schema.form_icon("unknown") == "file-alt"


def test_entry_cells_and_areas_stored_as_text():
    rec = assemble_record("gluebox", HEADER, {"entries": [{"location": 12, "count": 3, "status": 0}]})
    assert rec["entries"][0] == {"sr": 1, "location": "12", "count": 3, "status": "0"}
    bait = assemble_record("baitstation", HEADER, {"entries": [{"location": 4, "condition": 1}]})
    assert bait["entries"][0]["location"] == "4"
    assert bait["entries"][0]["condition"] == "1"
    rec = assemble_record("insecticide", HEADER, {"areas": ["Drain", 3, None, ""]})
    assert rec["areas"] == ["Drain", "3"]


@pytest.mark.parametrize("form_type, payload", [
    ("gluebox", {"entries": ["x"]}),
    ("baitstation", {"entries": [{"location": "A"}, 7]}),
    ("checklist", {"statuses": "pending"}),
])
def test_malformed_builtin_payloads_rejected(form_type, payload):
    with pytest.raises(FormValidationError):
        assemble_record(form_type, HEADER, payload)


@pytest.mark.parametrize("custom_data", [
    {"area": "Yard", "tableRows": [1]},
    {"area": "Yard", "tableRows": {"doses": ["x"]}},
    {"area": "Yard", "tableRows": {"doses": "row"}},
    ["area"],
])
def test_malformed_custom_data_rejected(custom_data):
    form = _form(FUMIGATION, key="cf1")
    with pytest.raises(FormValidationError):
        assemble_record("cf1", HEADER, {"customData": custom_data}, custom_form=form)


def test_assembled_record_must_fit_read_model():
    with pytest.raises(FormValidationError, match="date"):
        assemble_record("efk", {**HEADER, "date": ["2024-03-05"]}, {})


def test_select_accepts_only_its_options():
    entry = FormEntry(_form([{"id": "s", "type": "select", "label": "Method", "options": ["A", "B"]}]))
    entry.set_value("s", "B")
    entry.set_value("s", "")
    with pytest.raises(FormValidationError, match="Method"):
        entry.set_value("s", "Zebra")
    assert entry.custom_data(enforce_required=False)["s"] == ""


def test_type_change_drops_undeclared_keys():
    b = _builder_with(3)
    assert b.fields[2].options
    text = b.update_field(2, type="text")
    assert text.type == "text"
    assert "options" not in text.to_store()
    table = b.update_field(2, type="table", table_columns=["Room"])
    assert table.to_store()["tableColumns"] == ["Room"]


def test_extras_survive_when_type_unchanged():
    b = _builder_with(1)
    b.fields[0] = parse_field({**b.fields[0].to_store(), "hint": "keep"})
    assert b.update_field(0, label="Area").to_store()["hint"] == "keep"
