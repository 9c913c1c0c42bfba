from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from goodrun.database import get_db
from goodrun.dependencies import require_actor, require_admin
from goodrun.models.job import Job
from goodrun.models.organisation import Organisation
from goodrun.models.user import User
from goodrun.schemas.job import (
    JobCreate,
    JobListResponse,
    JobResponse,
    JobUpdate,
    JobViewResponse,
    Stage,
    TransitionResponse,
)
from goodrun.services import job_views, lifecycle_service
from goodrun.services.auth_service import Actor
from goodrun.services.lifecycle_service import LifecycleError

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _job_to_response(job: Job) -> JobResponse:
    assignee = job.assignee
    return JobResponse(
        id=job.id,
        organisation_id=job.organisation_id,
        organisation_name=job.organisation.name if job.organisation else None,
        name=job.name,
        address=job.address,
        weight=job.weight,
        value=job.value,
        size=job.size,
        intake_priority=job.intake_priority,
        progress_stage=job.progress_stage,
        follow_up=bool(job.follow_up),
        assigned_to=job.assigned_to,
        assignee_name=(assignee.name or assignee.email) if assignee else None,
        assignee_email=assignee.email if assignee else None,
        deadline_date=job.deadline_date,
        dropoff_date=job.dropoff_date,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def _http_error(exc: LifecycleError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


def _require_volunteer(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user or user.role != "volunteer":
        raise HTTPException(status_code=400, detail="assigned_to must reference a volunteer")
    return user


def _find_organisation(db: Session, req: JobCreate) -> Organisation:
    if req.organisation_id is not None:
        org = db.get(Organisation, req.organisation_id)
        if not org:
            raise HTTPException(status_code=400, detail="Organisation not found")
        return org
    name = req.organisation_name.strip()
    org = (
        db.query(Organisation)
        .filter(func.lower(func.trim(Organisation.name)) == name.lower())
        .first()
    )
    if not org:
        raise HTTPException(status_code=400, detail=f'Organisation "{name}" not found.')
    return org


# --- Role-filtered views (declared before /{job_id}) ---

@router.get("/available", response_model=JobViewResponse)
async def available_jobs(actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    return JobViewResponse(jobs=[_job_to_response(j) for j in job_views.available_jobs(db, actor)])


@router.get("/ongoing", response_model=JobViewResponse)
async def ongoing_jobs(actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    return JobViewResponse(jobs=[_job_to_response(j) for j in job_views.ongoing_jobs(db, actor)])


@router.get("/completed", response_model=JobViewResponse)
async def completed_jobs(actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    return JobViewResponse(jobs=[_job_to_response(j) for j in job_views.completed_jobs(db, actor)])


# --- Admin CRUD ---

@router.post("", response_model=JobResponse, status_code=201)
async def create_job(req: JobCreate, actor: Actor = Depends(require_admin), db: Session = Depends(get_db)):
    org = _find_organisation(db, req)
    if req.assigned_to is not None:
        _require_volunteer(db, req.assigned_to)

    job = lifecycle_service.create_job(
        db,
        actor,
        organisation_id=org.id,
        name=(req.name or "").strip() or org.name,
        address=req.address.strip(),
        weight=req.weight,
        value=req.value,
        size=req.size,
        intake_priority=req.intake_priority,
        deadline_date=req.deadline_date.isoformat(),
        follow_up=req.follow_up,
        assigned_to=req.assigned_to,
    )
    return _job_to_response(job)


@router.get("", response_model=JobListResponse)
async def list_jobs(
    stage: Stage | None = None,
    organisation_id: int | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    _admin: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Job)

    if stage:
        query = query.filter(Job.progress_stage == stage)
    if organisation_id is not None:
        query = query.filter(Job.organisation_id == organisation_id)

    total = query.count()
    jobs = (
        query.order_by(Job.created_at.desc(), Job.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    return JobListResponse(
        jobs=[_job_to_response(j) for j in jobs],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: int, actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    try:
        job = job_views.visible_job(db, job_id, actor)
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    return _job_to_response(job)


@router.patch("/{job_id}", response_model=JobResponse)
async def update_job(
    job_id: int,
    req: JobUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    job = db.get(Job, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    update_data = req.model_dump(exclude_unset=True)
    target_stage = update_data.pop("progress_stage", None)

    if "follow_up" in update_data and update_data["follow_up"] is None:
        raise HTTPException(status_code=400, detail="follow_up must be true or false")
    if "organisation_id" in update_data:
        org_id = update_data["organisation_id"]
        if org_id is None or not db.get(Organisation, org_id):
            raise HTTPException(status_code=400, detail="Organisation not found")
    if "assigned_to" in update_data:
        # reserved and in-delivery assignees only change through the lifecycle
        if target_stage is not None or job.progress_stage != "available":
            raise HTTPException(
                status_code=409,
                detail={
                    "message": "Assignee can only be edited while the job is available.",
                    "current_stage": job.progress_stage,
                },
            )
        if update_data["assigned_to"] is not None:
            _require_volunteer(db, update_data["assigned_to"])
    if update_data.get("deadline_date") is not None:
        update_data["deadline_date"] = update_data["deadline_date"].isoformat()

    for key, value in update_data.items():
        setattr(job, key, value)
    if update_data:
        job.updated_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    if target_stage is not None:
        db.flush()
        try:
            lifecycle_service.override_stage(db, job_id, target_stage, actor, commit=False)
        except LifecycleError as exc:
            db.rollback()
            raise _http_error(exc) from exc

    db.commit()
    return _job_to_response(lifecycle_service.load_job(db, job_id))


@router.delete("/{job_id}")
async def delete_job(job_id: int, _admin: Actor = Depends(require_admin), db: Session = Depends(get_db)):
    job = db.get(Job, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    db.delete(job)
    db.commit()
    return {"message": "Job deleted"}


# --- Lifecycle transitions ---

@router.post("/{job_id}/reserve", response_model=TransitionResponse)
async def reserve_job(job_id: int, actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    try:
        job = lifecycle_service.reserve(db, job_id, actor)
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    return TransitionResponse(message="Job reserved", job=_job_to_response(job))


@router.post("/{job_id}/advance", response_model=TransitionResponse)
async def advance_job(job_id: int, actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    try:
        job = lifecycle_service.advance(db, job_id, actor)
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    return TransitionResponse(message=f"Job moved to {job.progress_stage}", job=_job_to_response(job))


@router.post("/{job_id}/cancel", response_model=TransitionResponse)
async def cancel_job(job_id: int, actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    try:
        job = lifecycle_service.cancel(db, job_id, actor)
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    if job.progress_stage == "cancelled_in_delivery":
        message = "Job cancelled during delivery. Follow-up flagged."
    else:
        message = "Job returned to available."
    return TransitionResponse(message=message, job=_job_to_response(job))


@router.post("/{job_id}/requeue", response_model=TransitionResponse)
async def requeue_job(job_id: int, actor: Actor = Depends(require_actor), db: Session = Depends(get_db)):
    try:
        job = lifecycle_service.requeue(db, job_id, actor)
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    return TransitionResponse(message="Job returned to available.", job=_job_to_response(job))
