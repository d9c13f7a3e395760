from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from ..auth.security import get_context, get_current_user, require_roles
from ..document_creator.pdf_builder import build_record_pdf
from ..logging import structlog
from ..schemas.projects import Project
from ..schemas.records import (
    AttendanceSubmit,
    IPMRecord,
    LocationCheckRequest,
    RecordSubmit,
    SignatureRender,
)
from ..schemas.users import User
from ..services import access
from ..services.data_context import DataContext
from ..services.form_schema import FormValidationError, assemble_attendance, assemble_record, is_builtin
from ..services.geofence import LocationCheck, LocationStatus, check_location
from ..services.signature import SignaturePad
from ..services.time_rules import now_time, today_str


router = APIRouter(prefix="/records", tags=["records"])
logger = structlog.get_logger(__name__)


def _entry_project(ctx: DataContext, user: User, project_key: str) -> Project:
    if not project_key:
        raise HTTPException(status_code=400, detail="Select a project")
    project = ctx.get_project(project_key)
    if not access.can_enter_for(user, project):
        raise HTTPException(status_code=403, detail="Project not available for data entry")
    return project


def _location_payload(check: LocationCheck) -> dict:
    data = asdict(check)
    data["status"] = check.status.value
    data["canSave"] = check.can_save
    return data


@router.get("", response_model=List[IPMRecord])
def list_records(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    form_type: Optional[str] = Query(None, alias="type"),
    ctx: DataContext = Depends(get_context),
    user: User = Depends(get_current_user),
):
    return access.filter_records(access.visible_records(user, ctx.records), date_from, date_to, form_type)


@router.post("", response_model=IPMRecord)
def create_record(body: RecordSubmit, ctx: DataContext = Depends(get_context), user: User = Depends(require_roles("admin", "staff"))):
    if body.form_type == "attendance":
        raise HTTPException(status_code=400, detail="Submit attendance through /records/attendance")
    project = _entry_project(ctx, user, body.project_key)
    custom_form = None
    if not is_builtin(body.form_type):
        custom_form = ctx.get_custom_form(body.form_type)
        if not custom_form or not custom_form.active:
            raise HTTPException(status_code=404, detail="Form not found")
    header = {
        "projectKey": project.key,
        "userKey": user.key,
        "date": body.date or today_str(),
        "time": body.time or now_time(),
        "remarks": body.remarks,
        "techSignature": body.tech_signature,
        "clientSignature": body.client_signature,
    }
    try:
        data = assemble_record(body.form_type, header, body.payload(), custom_form)
    except FormValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    key = ctx.save_record(data)
    logger.info("record_saved", key=key, form_type=body.form_type, project_key=project.key)
    return ctx.get_record(key)


@router.post("/location-check")
def location_check(body: LocationCheckRequest, ctx: DataContext = Depends(get_context), user: User = Depends(require_roles("admin", "staff"))):
    project = _entry_project(ctx, user, body.project_key)
    return _location_payload(check_location(project, body.lat, body.lng, body.location_error))


@router.post("/attendance", response_model=IPMRecord)
def submit_attendance(body: AttendanceSubmit, ctx: DataContext = Depends(get_context), user: User = Depends(require_roles("admin", "staff"))):
    project = _entry_project(ctx, user, body.project_key)
    check = check_location(project, body.lat, body.lng, body.location_error)
    if not check.can_save:
        logger.info("attendance_rejected", project_key=project.key, status=check.status.value, distance=check.distance)
        if check.status == LocationStatus.pending:
            raise HTTPException(status_code=400, detail="Location required for attendance")
        raise HTTPException(
            status_code=400,
            detail=f"Too far away: you are {check.distance:.0f}m from site (max: {check.radius:.0f}m)",
        )
    header = {
        "projectKey": project.key,
        "userKey": user.key,
        "date": body.date or today_str(),
        "remarks": body.remarks,
        "techSignature": body.tech_signature,
        "clientSignature": body.client_signature,
    }
    try:
        data = assemble_attendance(header, {"timeIn": body.time_in, "timeOut": body.time_out, "work": body.work}, check.to_stamp())
    except FormValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    key = ctx.save_record(data)
    logger.info("attendance_saved", key=key, project_key=project.key, status=check.status.value)
    return ctx.get_record(key)


@router.post("/signature")
def render_signature(body: SignatureRender, _=Depends(get_current_user)):
    """Replay captured strokes and return the PNG data URL."""
    result = {"dataUrl": body.value}

    def on_change(value: str) -> None:
        result["dataUrl"] = value

    pad = SignaturePad(on_change, value=body.value, width=body.width, height=body.height)
    for stroke in body.strokes:
        points = [p for p in stroke if len(p) >= 2]
        if not points:
            continue
        pad.press(points[0][0], points[0][1])
        for x, y, *_ in points[1:]:
            pad.move(x, y)
        pad.release()
    return result


@router.get("/{key}", response_model=IPMRecord)
def get_record(key: str, ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    r = ctx.get_record(key)
    if not r or not access.can_view_record(user, r):
        raise HTTPException(status_code=404, detail="Record not found")
    return r


@router.get("/{key}/pdf")
def record_pdf(key: str, ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    r = ctx.get_record(key)
    if not r or not access.can_view_record(user, r):
        raise HTTPException(status_code=404, detail="Record not found")
    custom_form = None if is_builtin(r.form_type) else ctx.get_custom_form(r.form_type)
    pdf = build_record_pdf(r, ctx.get_project(r.project_key), ctx.get_user(r.user_key), custom_form)
    filename = f"record_{r.key[:8].upper()}.pdf"
    return Response(content=pdf, media_type="application/pdf", headers={"Content-Disposition": f'inline; filename="{filename}"'})


@router.delete("/{key}")
def delete_record(key: str, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    if not ctx.get_record(key):
        raise HTTPException(status_code=404, detail="Record not found")
    ctx.delete_record(key)
    return {"message": "Record deleted"}
