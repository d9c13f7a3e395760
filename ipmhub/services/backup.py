"""
Administrator backup export.
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

from .data_context import DataContext
from .time_rules import today_str


logger = structlog.get_logger(__name__)

BACKUP_COLLECTIONS = ("users", "records", "projects", "remarks")


def export_backup(ctx: DataContext) -> Dict[str, Any]:
    data: Dict[str, Any] = ctx.export_collections(*BACKUP_COLLECTIONS)
    data["exportedAt"] = datetime.now(timezone.utc).isoformat()
    logger.info("backup_exported", **{c: len(data[c]) for c in BACKUP_COLLECTIONS})
    return data


def backup_filename(date: Optional[str] = None) -> str:
    return f"a2z_ipm_backup_{date or today_str()}.json"


def dump_backup(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)
