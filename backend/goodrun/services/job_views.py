from sqlalchemy import case, func
from sqlalchemy.orm import Session

from goodrun.models.job import Job
from goodrun.models.job_event import JobEvent
from goodrun.services.auth_service import Actor
from goodrun.services.lifecycle_service import ONGOING_STAGES, load_job, TransitionForbidden


def available_jobs(db: Session, actor: Actor) -> list[Job]:
    # admins also see jobs cancelled mid-delivery so they can re-triage them
    stages = ["available", "cancelled_in_delivery"] if actor.is_admin else ["available"]
    return (
        db.query(Job)
        .filter(Job.progress_stage.in_(stages))
        .order_by(Job.created_at.desc(), Job.id.desc())
        .all()
    )


def ongoing_jobs(db: Session, actor: Actor) -> list[Job]:
    query = db.query(Job).filter(Job.progress_stage.in_(ONGOING_STAGES))
    if not actor.is_admin:
        query = query.filter(Job.assigned_to == actor.id)
    return (
        query.order_by(
            case((Job.progress_stage == "in_delivery", 0), else_=1),
            func.coalesce(Job.deadline_date, "9999-12-31"),
            Job.id.desc(),
        )
        .all()
    )


def completed_jobs(db: Session, actor: Actor) -> list[Job]:
    query = db.query(Job).filter(Job.progress_stage == "completed")
    if not actor.is_admin:
        query = query.filter(Job.assigned_to == actor.id)
    return query.order_by(Job.dropoff_date.is_(None), Job.dropoff_date.desc(), Job.id.desc()).all()


def visible_job(db: Session, job_id: int, actor: Actor) -> Job:
    """Load a job the actor may look at: admins see all, volunteers see open or own jobs."""
    job = load_job(db, job_id)
    if actor.is_admin or job.progress_stage == "available" or job.assigned_to == actor.id:
        return job
    raise TransitionForbidden("Forbidden: not assignee")


def job_history(db: Session, job_id: int, actor: Actor) -> list[JobEvent]:
    visible_job(db, job_id, actor)
    return (
        db.query(JobEvent)
        .filter(JobEvent.job_id == job_id)
        .order_by(JobEvent.occurred_at.asc(), JobEvent.id.asc())
        .all()
    )
