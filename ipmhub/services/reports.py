"""
Read-side aggregations for the monthly project report and the dashboard.
Nothing here is persisted; every view is recomputed from the current lists.
"""
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from ..config import settings
from ..schemas.forms import CustomForm
from ..schemas.projects import Project
from ..schemas.records import IPMRecord
from ..schemas.remarks import Remark
from ..schemas.users import User, UserRole
from .form_schema import BUILTIN_FORMS, form_icon, form_name
from .time_rules import day_of_month, day_str, days_in_month, fmt_date, today_str


WEEK_STARTS = (1, 8, 15, 22)
RECENT_LIMIT = 8


def _number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def filter_month(records: Iterable[IPMRecord], project_key: Optional[str], month: str) -> List[IPMRecord]:
    return [r for r in records if r.project_key == project_key and (r.date or "").startswith(month)]


def daily_series(records: Iterable[IPMRecord], month: str) -> List[Dict[str, Any]]:
    """One row per calendar day with a count per built-in form type, keyed by its short label."""
    records = list(records)
    rows = []
    for d in range(1, days_in_month(month) + 1):
        ds = day_str(month, d)
        counts = Counter(r.form_type for r in records if r.date == ds)
        row: Dict[str, Any] = {"day": str(d)}
        for form_type, info in BUILTIN_FORMS.items():
            row[info["short"]] = counts.get(form_type, 0)
        rows.append(row)
    return rows


def active_days(daily: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [row for row in daily if any(v > 0 for k, v in row.items() if k != "day")]


def weekly_series(records: Iterable[IPMRecord]) -> List[Dict[str, Any]]:
    """Four fixed buckets by day of month; days 22 to month end are all Week 4."""
    counts = [0, 0, 0, 0]
    for r in records:
        day = day_of_month(r.date)
        if day < 1:
            continue
        counts[min((day - 1) // 7, 3)] += 1
    return [{"week": f"Week {i + 1}", "count": c} for i, c in enumerate(counts)]


def distribution(records: Iterable[IPMRecord], custom_forms: Optional[List[CustomForm]] = None) -> List[Dict[str, Any]]:
    counts = Counter(r.form_type for r in records)
    return [{"name": form_name(ft, custom_forms), "value": n} for ft, n in counts.items()]


def summary(records: Iterable[IPMRecord], custom_forms: Optional[List[CustomForm]] = None) -> List[Dict[str, Any]]:
    counts = Counter(r.form_type for r in records)
    rows = [{"type": form_name(ft, custom_forms), "formType": ft, "count": n} for ft, n in counts.items()]
    return sorted(rows, key=lambda row: row["count"], reverse=True)


def insecticide_trend(records: Iterable[IPMRecord]) -> List[Dict[str, Any]]:
    threshold = settings.remaining_qty_low_threshold
    out = []
    for r in records:
        if r.form_type != "insecticide":
            continue
        remaining = _number(r.remaining_qty)
        out.append({
            "date": fmt_date(r.date),
            "qty": _number(r.qty),
            "remaining": remaining,
            # an empty reading is not a low one
            "low": bool(r.remaining_qty) and remaining < threshold,
        })
    return out


def bait_trend(records: Iterable[IPMRecord]) -> List[Dict[str, Any]]:
    return [
        {
            "date": fmt_date(r.date),
            "active": r.active_stations or 0,
            "total": r.total_stations or 0,
            "baitUsed": _number(r.bait_used),
        }
        for r in records if r.form_type == "baitstation"
    ]


def monthly_report(
    records: Iterable[IPMRecord],
    project_key: str,
    month: str,
    custom_forms: Optional[List[CustomForm]] = None,
) -> Dict[str, Any]:
    filtered = filter_month(records, project_key, month)
    daily = daily_series(filtered, month)
    return {
        "projectKey": project_key,
        "month": month,
        "total": len(filtered),
        "attendance": len([r for r in filtered if r.form_type == "attendance"]),
        "daily": daily,
        "activeDays": active_days(daily),
        "weekly": weekly_series(filtered),
        "distribution": distribution(filtered, custom_forms),
        "summary": summary(filtered, custom_forms),
        "insecticideTrend": insecticide_trend(filtered),
        "baitTrend": bait_trend(filtered),
    }


def recent_records(records: Iterable[IPMRecord], limit: int = RECENT_LIMIT) -> List[IPMRecord]:
    return sorted(records, key=lambda r: r.created_at or 0, reverse=True)[:limit]


def dashboard_stats(
    user: User,
    users: List[User],
    projects: List[Project],
    records: List[IPMRecord],
    remarks: List[Remark],
    today: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Stat cards for the dashboard.

    Args:
        user: Signed-in user
        projects: Projects visible to the user
        records: Records visible to the user
        today: Override for the current date (YYYY-MM-DD)
    """
    td = today or today_str()
    todays = len([r for r in records if r.date == td])
    if user.role == UserRole.admin:
        return [
            {"label": "Active Projects", "value": len([p for p in projects if p.active]), "icon": "building"},
            {"label": "Active Staff", "value": len([u for u in users if u.role == UserRole.staff and u.active]), "icon": "users"},
            {"label": "Today's Entries", "value": todays, "icon": "clipboard-check"},
            {"label": "Total Records", "value": len(records), "icon": "file-alt"},
            {"label": "Pending Remarks", "value": len(remarks), "icon": "comments"},
        ]
    return [
        {"label": "My Projects", "value": len(projects), "icon": "building"},
        {"label": "Today's Entries", "value": todays, "icon": "clipboard-check"},
        {"label": "Total Records", "value": len(records), "icon": "file-alt"},
    ]


def recent_activity(
    records: List[IPMRecord],
    users: List[User],
    projects: List[Project],
    custom_forms: Optional[List[CustomForm]] = None,
) -> List[Dict[str, Any]]:
    by_user = {u.key: u for u in users}
    by_project = {p.key: p for p in projects}
    out = []
    for r in recent_records(records):
        project = by_project.get(r.project_key)
        u = by_user.get(r.user_key)
        out.append({
            "key": r.key,
            "formType": r.form_type,
            "formName": form_name(r.form_type, custom_forms),
            "icon": form_icon(r.form_type),
            "projectName": project.name if project else "-",
            "userName": u.name if u else "-",
            "createdAt": r.created_at,
        })
    return out
