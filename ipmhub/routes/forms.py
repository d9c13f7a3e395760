from dataclasses import asdict
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException

from ..auth.security import get_context, get_current_user, require_roles
from ..schemas.forms import BuiltinFormInfo, CustomForm, CustomFormSave
from ..schemas.users import User, UserRole
from ..services.data_context import DataContext
from ..services.form_schema import FormBuilder, FormValidationError, builtin_catalogue, render_controls


router = APIRouter(prefix="/forms", tags=["forms"])


def _visible_form(ctx: DataContext, user: User, key: str) -> CustomForm:
    form = ctx.get_custom_form(key)
    if not form or (user.role != UserRole.admin and not form.active):
        raise HTTPException(status_code=404, detail="Form not found")
    return form


def _save_builder(ctx: DataContext, builder: FormBuilder) -> CustomForm:
    ids = [f.id for f in builder.fields]
    if len(ids) != len(set(ids)):
        raise HTTPException(status_code=400, detail="Field ids must be unique")
    try:
        payload = builder.to_payload()
    except FormValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    key = ctx.save_custom_form(payload, builder.key)
    return ctx.get_custom_form(key)


@router.get("/builtin", response_model=List[BuiltinFormInfo])
def list_builtin(_=Depends(get_current_user)):
    return builtin_catalogue()


@router.get("", response_model=List[CustomForm])
def list_forms(ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    forms = ctx.custom_forms
    if user.role != UserRole.admin:
        forms = [f for f in forms if f.active]
    return forms


@router.get("/{key}", response_model=CustomForm)
def get_form(key: str, ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    return _visible_form(ctx, user, key)


@router.get("/{key}/controls")
def form_controls(key: str, ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    return [asdict(c) for c in render_controls(_visible_form(ctx, user, key))]


@router.post("", response_model=CustomForm)
def create_form(body: CustomFormSave, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    builder = FormBuilder(
        name=body.name,
        icon=body.icon,
        description=body.description or "",
        fields=list(body.fields),
        active=body.active,
    )
    return _save_builder(ctx, builder)


@router.put("/{key}", response_model=CustomForm)
def update_form(key: str, body: CustomFormSave, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    if not ctx.get_custom_form(key):
        raise HTTPException(status_code=404, detail="Form not found")
    builder = FormBuilder(
        name=body.name,
        icon=body.icon,
        description=body.description or "",
        fields=list(body.fields),
        active=body.active,
        key=key,
    )
    return _save_builder(ctx, builder)


@router.delete("/{key}")
def delete_form(key: str, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    if not ctx.get_custom_form(key):
        raise HTTPException(status_code=404, detail="Form not found")
    ctx.delete_custom_form(key)
    return {"message": "Form deleted"}


# ---------- FIELD EDITING ----------
def _open(ctx: DataContext, key: str) -> FormBuilder:
    form = ctx.get_custom_form(key)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    return FormBuilder.open(form)


@router.post("/{key}/fields", response_model=CustomForm)
def add_field(key: str, field_type: str = Body(..., embed=True, alias="type"), ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    builder = _open(ctx, key)
    try:
        builder.add_field(field_type)
    except FormValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _save_builder(ctx, builder)


@router.patch("/{key}/fields/{index}", response_model=CustomForm)
def update_field(key: str, index: int, changes: Dict[str, Any] = Body(...), ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    builder = _open(ctx, key)
    try:
        builder.update_field(index, **changes)
    except FormValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _save_builder(ctx, builder)


@router.post("/{key}/fields/{index}/move", response_model=CustomForm)
def move_field(key: str, index: int, direction: int = Body(..., embed=True), ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    builder = _open(ctx, key)
    try:
        builder.move_field(index, direction)
    except FormValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _save_builder(ctx, builder)


@router.delete("/{key}/fields/{index}", response_model=CustomForm)
def remove_field(key: str, index: int, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    builder = _open(ctx, key)
    try:
        builder.remove_field(index)
    except FormValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _save_builder(ctx, builder)
