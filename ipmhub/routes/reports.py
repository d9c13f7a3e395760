from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import get_context, get_current_user
from ..config import settings
from ..schemas.projects import Project
from ..schemas.users import User, UserRole
from ..services import access, reports
from ..services.data_context import DataContext
from ..services.time_rules import current_month, parse_month


router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/projects", response_model=List[Project])
def report_projects(ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    return access.report_projects(user, ctx.projects)


@router.get("/monthly")
def monthly_report(
    project: Optional[str] = None,
    month: Optional[str] = None,
    ctx: DataContext = Depends(get_context),
    user: User = Depends(get_current_user),
):
    month = month or current_month()
    try:
        parse_month(month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    allowed = access.report_projects(user, ctx.projects)
    if not project:
        if not allowed:
            raise HTTPException(status_code=404, detail="No projects available")
        project = allowed[0].key
    if project not in {p.key for p in allowed}:
        raise HTTPException(status_code=404, detail="Project not found")
    return reports.monthly_report(ctx.records, project, month, ctx.custom_forms)


@router.get("/dashboard")
def dashboard(ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    projects = access.visible_projects(user, ctx.projects)
    records = access.visible_records(user, ctx.records)
    users = ctx.users
    remarks = ctx.remarks if user.role == UserRole.admin else []
    return {
        "stats": reports.dashboard_stats(user, users, projects, records, remarks),
        "recent": reports.recent_activity(records, users, ctx.projects, ctx.custom_forms),
        "company": {
            "name": settings.company_name,
            "address": settings.company_address,
            "phone": settings.company_phone,
            "email": settings.company_email,
            "whatsapp": settings.company_whatsapp,
        },
    }
