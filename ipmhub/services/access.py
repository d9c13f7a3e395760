"""
Role scoping: which projects and records a signed-in user may see or write to.
"""
from typing import Iterable, List, Optional

from ..schemas.projects import Project
from ..schemas.records import IPMRecord
from ..schemas.users import User, UserRole


def visible_projects(user: User, projects: Iterable[Project]) -> List[Project]:
    if user.role == UserRole.admin:
        return list(projects)
    if user.role == UserRole.staff:
        assigned = set(user.projects or [])
        return [p for p in projects if p.key in assigned]
    return [p for p in projects if p.key == user.project_key]


def report_projects(user: User, projects: Iterable[Project]) -> List[Project]:
    """Projects offered in the report picker; admins only see active ones."""
    if user.role == UserRole.admin:
        return [p for p in projects if p.active]
    return visible_projects(user, projects)


def entry_projects(user: User, projects: Iterable[Project]) -> List[Project]:
    """Projects a user may submit records against."""
    if user.role == UserRole.client:
        return []
    return [p for p in visible_projects(user, projects) if p.active]


def can_enter_for(user: User, project: Optional[Project]) -> bool:
    if project is None:
        return False
    return any(p.key == project.key for p in entry_projects(user, [project]))


def visible_records(user: User, records: Iterable[IPMRecord]) -> List[IPMRecord]:
    if user.role == UserRole.admin:
        return list(records)
    if user.role == UserRole.staff:
        return [r for r in records if r.user_key == user.key]
    return [r for r in records if r.project_key == user.project_key]


def can_view_record(user: User, record: IPMRecord) -> bool:
    return bool(visible_records(user, [record]))


def filter_records(
    records: Iterable[IPMRecord],
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    form_type: Optional[str] = None,
) -> List[IPMRecord]:
    """Date range (inclusive, string compare on YYYY-MM-DD) and type filter, newest first."""
    out = []
    for r in records:
        if date_from and (r.date or "") < date_from:
            continue
        if date_to and (r.date or "") > date_to:
            continue
        if form_type and r.form_type != form_type:
            continue
        out.append(r)
    return sorted(out, key=lambda r: r.created_at or 0, reverse=True)
