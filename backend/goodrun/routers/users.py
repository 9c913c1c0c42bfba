from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from goodrun.database import get_db
from goodrun.dependencies import require_admin
from goodrun.models.job import Job
from goodrun.models.user import User
from goodrun.schemas.user import UserCreate, UserResponse, UserUpdate
from goodrun.services.auth_service import auth_service
from goodrun.services.lifecycle_service import ONGOING_STAGES
from goodrun.utils.security import hash_password

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(require_admin)],
)


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _ongoing_job_count(db: Session, user_id: int) -> int:
    return (
        db.query(func.count(Job.id))
        .filter(Job.assigned_to == user_id, Job.progress_stage.in_(ONGOING_STAGES))
        .scalar()
    )


@router.get("", response_model=list[UserResponse])
async def list_users(db: Session = Depends(get_db)):
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).limit(500).all()


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(req: UserCreate, db: Session = Depends(get_db)):
    email = req.email.strip().lower()
    if db.query(User).filter(func.lower(User.email) == email).first():
        raise HTTPException(status_code=409, detail="Email already exists")

    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    user = User(
        name=req.name.strip(),
        email=email,
        role=req.role,
        password_hash=hash_password(req.password),
        phone_no=req.phone_no,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: Session = Depends(get_db)):
    return _get_user_or_404(db, user_id)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(user_id: int, req: UserUpdate, db: Session = Depends(get_db)):
    user = _get_user_or_404(db, user_id)

    update_data = req.model_dump(exclude_unset=True)
    new_role = update_data.get("role")
    if new_role is not None and new_role != user.role and _ongoing_job_count(db, user_id):
        raise HTTPException(status_code=409, detail="User still holds reserved or in-delivery jobs")
    password = update_data.pop("password", None)
    for key, value in update_data.items():
        if value is None and key != "phone_no":
            continue
        setattr(user, key, value)
    if password is not None:
        user.password_hash = hash_password(password)
        auth_service.revoke_user_sessions(db, user.id)
    user.updated_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}")
async def delete_user(user_id: int, db: Session = Depends(get_db)):
    user = _get_user_or_404(db, user_id)
    if _ongoing_job_count(db, user_id):
        raise HTTPException(status_code=409, detail="User still holds reserved or in-delivery jobs")

    # finished and cancelled jobs keep their row but lose the reference
    db.query(Job).filter(Job.assigned_to == user_id).update(
        {Job.assigned_to: None}, synchronize_session=False
    )
    db.delete(user)
    db.commit()
    return {"message": "User deleted"}
