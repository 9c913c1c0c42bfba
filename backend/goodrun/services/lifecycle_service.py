"""Job lifecycle state machine.

Every stage change goes through :func:`apply_event`. The change itself is a
single conditional UPDATE whose WHERE clause re-checks the expected stage (and,
where relevant, the assignee). Zero affected rows means another request got
there first; that is reported as :class:`StageConflict` and never retried.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.orm import Session

from goodrun.models.job import STAGES, Job
from goodrun.models.job_event import JobEvent
from goodrun.services.auth_service import Actor

logger = logging.getLogger(__name__)

ONGOING_STAGES = ("reserved", "in_delivery")
EVENTS = ("reserve", "advance", "cancel", "requeue")
ADMIN_EVENTS = ("cancel", "requeue")


class LifecycleError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def detail(self):
        return self.message


class JobNotFound(LifecycleError):
    status_code = 404

    def __init__(self, job_id: int):
        super().__init__("Job not found")
        self.job_id = job_id


class TransitionForbidden(LifecycleError):
    status_code = 403


class StageConflict(LifecycleError):
    status_code = 409

    def __init__(self, message: str, current_stage: str | None = None):
        super().__init__(message)
        self.current_stage = current_stage

    @property
    def detail(self):
        return {"message": self.message, "current_stage": self.current_stage}


@dataclass(frozen=True)
class Transition:
    event: str
    source: str
    target: str
    assign_actor: bool = False
    clear_assignee: bool = False
    flag_follow_up: bool = False
    clear_follow_up: bool = False
    stamp_dropoff: bool = False


TRANSITIONS = (
    Transition("reserve", "available", "reserved", assign_actor=True),
    Transition("advance", "reserved", "in_delivery"),
    Transition("advance", "in_delivery", "completed", stamp_dropoff=True),
    Transition("cancel", "reserved", "available", clear_assignee=True),
    # the assignee is kept so admins can still contact them
    Transition("cancel", "in_delivery", "cancelled_in_delivery", flag_follow_up=True),
    Transition("requeue", "cancelled_in_delivery", "available", clear_assignee=True, clear_follow_up=True),
)

_TRANSITIONS_BY_SOURCE = {(t.event, t.source): t for t in TRANSITIONS}

_REJECTED = {
    "reserve": "Job is no longer available.",
    "advance": "Nothing to advance",
    "cancel": "Only jobs in 'reserved' or 'in_delivery' can be cancelled.",
    "requeue": "Only jobs cancelled during delivery can be requeued.",
}


def find_transition(event: str, stage: str) -> Transition | None:
    return _TRANSITIONS_BY_SOURCE.get((event, stage))


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def load_job(db: Session, job_id: int) -> Job:
    job = db.get(Job, job_id, populate_existing=True)
    if job is None:
        raise JobNotFound(job_id)
    return job


def _authorize(job: Job, event: str, actor: Actor):
    if event == "reserve":
        if not actor.is_volunteer:
            raise TransitionForbidden("Only volunteers can reserve jobs")
        return
    if event == "requeue":
        if not actor.is_admin:
            raise TransitionForbidden("Only admins can requeue jobs")
        return
    if event == "cancel" and actor.is_admin:
        return
    if event == "advance" and not actor.is_volunteer:
        raise TransitionForbidden("Only volunteers can advance jobs")
    if job.assigned_to != actor.id:
        raise TransitionForbidden("Forbidden: not assignee")


def _compare_and_swap(db: Session, job_id: int, transition: Transition, actor: Actor, now: str) -> int:
    sets = ["progress_stage = :target", "updated_at = :now"]
    where = ["id = :job_id", "progress_stage = :source"]
    params = {
        "job_id": job_id,
        "source": transition.source,
        "target": transition.target,
        "now": now,
        "actor_id": actor.id,
    }

    if transition.assign_actor:
        sets.append("assigned_to = :actor_id")
        where.append("(assigned_to IS NULL OR assigned_to = :actor_id)")
    elif not (actor.is_admin and transition.event in ADMIN_EVENTS):
        where.append("assigned_to = :actor_id")
    if transition.clear_assignee:
        sets.append("assigned_to = NULL")
    if transition.flag_follow_up:
        sets.append("follow_up = 1")
    if transition.clear_follow_up:
        sets.append("follow_up = 0")
    if transition.stamp_dropoff:
        sets.append("dropoff_date = :now")

    result = db.execute(
        text(f"UPDATE jobs SET {', '.join(sets)} WHERE {' AND '.join(where)}"),
        params,
    )
    return result.rowcount


def apply_event(db: Session, job_id: int, event: str, actor: Actor, commit: bool = True) -> Job:
    """Run ``event`` against job ``job_id`` on behalf of ``actor``.

    Raises JobNotFound, TransitionForbidden or StageConflict. On success the
    transition and its audit row are committed together (or only flushed when
    ``commit`` is False) and the refreshed job is returned.
    """
    if event not in EVENTS:
        raise ValueError(f"Unknown lifecycle event: {event}")

    job = load_job(db, job_id)
    try:
        _authorize(job, event, actor)
    except TransitionForbidden:
        logger.warning("Forbidden %s on job %s by user %s (%s)", event, job_id, actor.id, actor.role)
        raise

    transition = find_transition(event, job.progress_stage)
    taken = event == "reserve" and job.assigned_to not in (None, actor.id)
    if transition is None or taken:
        logger.warning(
            "Rejected %s on job %s at stage %s by user %s",
            event, job_id, job.progress_stage, actor.id,
        )
        raise StageConflict(_REJECTED[event], job.progress_stage)

    now = _now()
    if _compare_and_swap(db, job_id, transition, actor, now) == 0:
        db.rollback()
        current = load_job(db, job_id)
        logger.warning("Stale %s on job %s: stage is now %s", event, job_id, current.progress_stage)
        message = _REJECTED["reserve"] if event == "reserve" else "Job changed while processing; re-fetch and retry."
        raise StageConflict(message, current.progress_stage)

    db.add(JobEvent(
        job_id=job_id,
        event=event,
        from_stage=transition.source,
        to_stage=transition.target,
        actor_id=actor.id,
        occurred_at=now,
    ))
    if commit:
        db.commit()
    else:
        db.flush()
    logger.info("Job %s %s -> %s (%s by user %s)", job_id, transition.source, transition.target, event, actor.id)
    return load_job(db, job_id)


def reserve(db: Session, job_id: int, actor: Actor) -> Job:
    return apply_event(db, job_id, "reserve", actor)


def advance(db: Session, job_id: int, actor: Actor) -> Job:
    return apply_event(db, job_id, "advance", actor)


def cancel(db: Session, job_id: int, actor: Actor) -> Job:
    return apply_event(db, job_id, "cancel", actor)


def requeue(db: Session, job_id: int, actor: Actor) -> Job:
    return apply_event(db, job_id, "requeue", actor)


def override_stage(db: Session, job_id: int, target: str, actor: Actor, commit: bool = True) -> Job:
    """Admin stage edit, mapped onto the admin transition that reaches ``target``."""
    if not actor.is_admin:
        raise TransitionForbidden("Only admins can change a job's stage")
    if target not in STAGES:
        raise ValueError(f"Unknown stage: {target}")

    job = load_job(db, job_id)
    if job.progress_stage == target:
        return job
    for event in ADMIN_EVENTS:
        transition = find_transition(event, job.progress_stage)
        if transition and transition.target == target:
            return apply_event(db, job_id, event, actor, commit=commit)
    raise StageConflict(
        f"Cannot move a job from '{job.progress_stage}' to '{target}' directly.",
        job.progress_stage,
    )


def create_job(db: Session, actor: Actor, **fields) -> Job:
    if not actor.is_admin:
        raise TransitionForbidden("Only admins can create jobs")
    now = _now()
    job = Job(progress_stage="available", follow_up=fields.pop("follow_up", False),
              created_at=now, updated_at=now, **fields)
    db.add(job)
    db.flush()
    db.add(JobEvent(job_id=job.id, event="create", from_stage=None, to_stage="available",
                    actor_id=actor.id, occurred_at=now))
    db.commit()
    db.refresh(job)
    logger.info("Job %s created by user %s", job.id, actor.id)
    return job
