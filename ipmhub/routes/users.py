from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import get_context, require_roles
from ..schemas.users import ClientSave, StaffSave, User, UserPublic, UserRole
from ..services.data_context import DataContext


router = APIRouter(prefix="/users", tags=["users"])


def _username_taken(ctx: DataContext, username: str, exclude_key: Optional[str] = None) -> bool:
    wanted = username.lower()
    return any(u.username.lower() == wanted and u.key != exclude_key for u in ctx.users)


def _existing(ctx: DataContext, key: str, role: UserRole) -> User:
    u = ctx.get_user(key)
    if not u or u.role != role:
        raise HTTPException(status_code=404, detail="User not found")
    return u


# ---------- STAFF ----------
@router.get("/staff", response_model=List[UserPublic])
def list_staff(ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    return [UserPublic.from_user(u) for u in ctx.users if u.role == UserRole.staff]


def _save_staff(ctx: DataContext, body: StaffSave, key: Optional[str]) -> UserPublic:
    if not body.emp_id or not body.name or not body.username:
        raise HTTPException(status_code=400, detail="Fill required fields")
    if not key and not body.password:
        raise HTTPException(status_code=400, detail="Password required")
    if _username_taken(ctx, body.username, key):
        raise HTTPException(status_code=400, detail="Username exists")
    data = {
        "empId": body.emp_id,
        "name": body.name,
        "username": body.username,
        "phone": body.phone or "",
        "role": UserRole.staff.value,
        "projects": body.projects,
        "active": body.active,
    }
    if body.password:
        data["password"] = body.password
    key = ctx.save_user(data, key)
    return UserPublic.from_user(ctx.get_user(key))


@router.post("/staff", response_model=UserPublic)
def create_staff(body: StaffSave, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    return _save_staff(ctx, body, None)


@router.put("/staff/{key}", response_model=UserPublic)
def update_staff(key: str, body: StaffSave, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    _existing(ctx, key, UserRole.staff)
    return _save_staff(ctx, body, key)


# ---------- CLIENTS ----------
@router.get("/clients", response_model=List[UserPublic])
def list_clients(ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    return [UserPublic.from_user(u) for u in ctx.users if u.role == UserRole.client]


def _save_client(ctx: DataContext, body: ClientSave, key: Optional[str]) -> UserPublic:
    if not body.name or not body.username or not body.project_key:
        raise HTTPException(status_code=400, detail="Fill required fields")
    if not key and not body.password:
        raise HTTPException(status_code=400, detail="Password required")
    if _username_taken(ctx, body.username, key):
        raise HTTPException(status_code=400, detail="Username exists")
    data = {
        "name": body.name,
        "username": body.username,
        "projectKey": body.project_key,
        "role": UserRole.client.value,
        "active": body.active,
    }
    if body.password:
        data["password"] = body.password
    key = ctx.save_user(data, key)
    return UserPublic.from_user(ctx.get_user(key))


@router.post("/clients", response_model=UserPublic)
def create_client(body: ClientSave, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    return _save_client(ctx, body, None)


@router.put("/clients/{key}", response_model=UserPublic)
def update_client(key: str, body: ClientSave, ctx: DataContext = Depends(get_context), _=Depends(require_roles("admin"))):
    _existing(ctx, key, UserRole.client)
    return _save_client(ctx, body, key)


@router.delete("/{key}")
def delete_user(key: str, ctx: DataContext = Depends(get_context), admin: User = Depends(require_roles("admin"))):
    if key == admin.key:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    if not ctx.get_user(key):
        raise HTTPException(status_code=404, detail="User not found")
    ctx.delete_user(key)
    return {"message": "User deleted"}
