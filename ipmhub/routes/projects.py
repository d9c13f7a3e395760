from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import get_context, get_current_user, require_roles
from ..schemas.projects import Project, ProjectSave
from ..schemas.users import User
from ..services import access
from ..services.data_context import DataContext


router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=List[Project])
def list_projects(ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    return access.visible_projects(user, ctx.projects)


@router.get("/entry", response_model=List[Project])
def entry_projects(ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    """Projects the user may submit records against."""
    return access.entry_projects(user, ctx.projects)


@router.get("/{key}", response_model=Project)
def get_project(key: str, ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    p = ctx.get_project(key)
    if not p or not access.visible_projects(user, [p]):
        raise HTTPException(status_code=404, detail="Project not found")
    return p


def _payload(body: ProjectSave) -> dict:
    if not body.code or not body.name or not body.client:
        raise HTTPException(status_code=400, detail="Fill required fields")
    return {
        "code": body.code,
        "name": body.name,
        "client": body.client,
        "contact": body.contact or "",
        "address": body.address or "",
        "lat": body.lat,
        "lng": body.lng,
        "radius": body.radius,
        "gpsEnabled": body.gps_enabled,
        "active": body.active,
    }


@router.post("", response_model=Project)
def create_project(body: ProjectSave, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    key = ctx.save_project(_payload(body))
    return ctx.get_project(key)


@router.put("/{key}", response_model=Project)
def update_project(key: str, body: ProjectSave, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    if not ctx.get_project(key):
        raise HTTPException(status_code=404, detail="Project not found")
    ctx.save_project(_payload(body), key)
    return ctx.get_project(key)


@router.delete("/{key}")
def delete_project(key: str, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    if not ctx.get_project(key):
        raise HTTPException(status_code=404, detail="Project not found")
    ctx.delete_project(key)
    return {"message": "Project deleted"}
