from fastapi import APIRouter, Depends, HTTPException

from ..schemas.users import LoginRequest, TokenResponse, User, UserPublic
from ..services.data_context import DataContext
from .security import authenticate, create_access_token, get_context, get_current_user
from ..logging import structlog


router = APIRouter(prefix="/auth", tags=["auth"])
logger = structlog.get_logger(__name__)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, ctx: DataContext = Depends(get_context)):
    user = authenticate(ctx, req.username, req.password)
    if user is None:
        logger.info("login_failed", username=req.username)
        raise HTTPException(status_code=401, detail="Invalid username or password")
    logger.info("login_ok", user_key=user.key, role=user.role.value)
    return TokenResponse(access_token=create_access_token(user.key, user.role.value), user=UserPublic.from_user(user))


@router.get("/me", response_model=UserPublic)
def me(user: User = Depends(get_current_user)):
    return UserPublic.from_user(user)


@router.post("/logout")
def logout(user: User = Depends(get_current_user)):
    # sessions are stateless; the client drops its token
    logger.info("logout", user_key=user.key)
    return {"status": "ok"}
