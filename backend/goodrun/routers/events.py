from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from goodrun.database import get_db
from goodrun.dependencies import require_actor
from goodrun.models.job_event import JobEvent
from goodrun.schemas.event import JobEventResponse
from goodrun.services.auth_service import Actor
from goodrun.services.job_views import job_history
from goodrun.services.lifecycle_service import LifecycleError

router = APIRouter(tags=["events"])


def _event_to_response(ev: JobEvent) -> JobEventResponse:
    return JobEventResponse(
        id=ev.id,
        job_id=ev.job_id,
        event=ev.event,
        from_stage=ev.from_stage,
        to_stage=ev.to_stage,
        actor_id=ev.actor_id,
        occurred_at=ev.occurred_at,
    )


@router.get("/jobs/{job_id}/events", response_model=list[JobEventResponse])
async def list_events(job_id: int, actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    try:
        events = job_history(db, job_id, actor)
    except LifecycleError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return [_event_to_response(e) for e in events]
