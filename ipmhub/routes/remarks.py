from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import get_context, require_roles
from ..schemas.remarks import Remark, RemarkCreate, RemarkView
from ..schemas.users import User
from ..services.data_context import DataContext


router = APIRouter(prefix="/remarks", tags=["remarks"])


@router.post("", response_model=Remark)
def create_remark(body: RemarkCreate, ctx: DataContext = Depends(get_context), user: User = Depends(require_roles("client"))):
    text = (body.text or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="Enter your remark")
    key = ctx.save_remark({"text": text, "userKey": user.key, "projectKey": user.project_key, "read": False})
    return ctx.get_remark(key)


@router.get("", response_model=List[RemarkView])
def list_remarks(ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    users = {u.key: u for u in ctx.users}
    projects = {p.key: p for p in ctx.projects}
    out = []
    for r in sorted(ctx.remarks, key=lambda r: r.created_at or 0, reverse=True):
        u = users.get(r.user_key)
        p = projects.get(r.project_key)
        out.append(RemarkView(
            key=r.key,
            text=r.text,
            user_key=r.user_key,
            project_key=r.project_key,
            user_name=u.name if u else "Unknown",
            project_name=p.name if p else "-",
            created_at=r.created_at,
        ))
    return out


@router.delete("/{key}")
def delete_remark(key: str, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    if not ctx.get_remark(key):
        raise HTTPException(status_code=404, detail="Remark not found")
    ctx.delete_remark(key)
    return {"message": "Remark deleted"}
