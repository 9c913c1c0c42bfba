from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from goodrun.database import get_db
from goodrun.dependencies import require_actor
from goodrun.models.job import Job
from goodrun.models.user import User
from goodrun.schemas.user import ProfileResponse
from goodrun.services.auth_service import Actor

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileResponse)
async def get_profile(actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    user = db.get(User, actor.id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    finished = (
        db.query(func.count(Job.id))
        .filter(Job.assigned_to == user.id, Job.progress_stage == "completed")
        .scalar()
    )
    return ProfileResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        phone_no=user.phone_no,
        birthday=user.birthday,
        created_at=user.created_at,
        updated_at=user.updated_at,
        pickups_finished=finished,
    )
