from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..auth.security import get_context, get_current_user, require_roles
from ..schemas.users import ProfileUpdate, User, UserPublic
from ..services.backup import backup_filename, dump_backup, export_backup
from ..services.data_context import DataContext


router = APIRouter(prefix="/settings", tags=["settings"])


@router.put("/profile", response_model=UserPublic)
def update_profile(body: ProfileUpdate, ctx: DataContext = Depends(get_context), user: User = Depends(get_current_user)):
    name = (body.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name required")
    data = {"name": name}
    if body.password:
        data["password"] = body.password
    ctx.save_user(data, user.key)
    return UserPublic.from_user(ctx.get_user(user.key))


@router.get("/backup")
def download_backup(ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    body = dump_backup(export_backup(ctx))
    return Response(
        content=body,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{backup_filename()}"'},
    )
