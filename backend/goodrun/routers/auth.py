from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from goodrun.database import get_db
from goodrun.dependencies import require_actor, require_token
from goodrun.models.user import User
from goodrun.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    LoginThrottleResponse,
)
from goodrun.services.auth_service import Actor, auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse | LoginThrottleResponse)
async def login(req: LoginRequest, request: Request, db: Session = Depends(get_db)):
    if not req.email.strip() or not req.password:
        raise HTTPException(status_code=400, detail="Email and password required")

    client_host = request.client.host if request.client else "unknown"
    result = auth_service.login(db, req.email, req.password, throttle_key=f"login:{client_host}")
    if result is None:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if "error" in result:
        raise HTTPException(status_code=429, detail=result)
    return LoginResponse(**result)


@router.post("/logout")
async def logout(token: str = Depends(require_token), db: Session = Depends(get_db)):
    auth_service.logout(db, token)
    return {"message": "Logged out"}


@router.post("/change-password")
async def change_password(
    req: ChangePasswordRequest,
    token: str = Depends(require_token),
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
):
    user = db.get(User, actor.id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not auth_service.change_password(db, user, req.old_password, req.new_password, current_token=token):
        raise HTTPException(status_code=400, detail="Incorrect old password")
    return {"message": "Password updated successfully"}
