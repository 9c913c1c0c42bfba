from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from goodrun.database import get_db
from goodrun.dependencies import require_actor, require_admin
from goodrun.models.job import Job
from goodrun.models.organisation import Organisation
from goodrun.schemas.organisation import (
    OrganisationCreate,
    OrganisationResponse,
    OrganisationUpdate,
)

router = APIRouter(
    prefix="/organisations",
    tags=["organisations"],
    dependencies=[Depends(require_actor)],
)


def _org_to_response(org: Organisation, job_count: int) -> OrganisationResponse:
    return OrganisationResponse(
        id=org.id,
        name=org.name,
        contact_no=org.contact_no,
        office_hours=org.office_hours,
        address=org.address,
        created_at=org.created_at,
        updated_at=org.updated_at,
        job_count=job_count,
    )


def _job_count(db: Session, org_id: int) -> int:
    return db.query(func.count(Job.id)).filter(Job.organisation_id == org_id).scalar()


def _get_org_or_404(db: Session, org_id: int) -> Organisation:
    org = db.get(Organisation, org_id)
    if not org:
        raise HTTPException(status_code=404, detail="Organisation not found")
    return org


@router.get("", response_model=list[OrganisationResponse])
async def list_organisations(q: str | None = None, db: Session = Depends(get_db)):
    job_count = func.count(Job.id).label("job_count")
    query = (
        db.query(Organisation, job_count)
        .outerjoin(Job, Job.organisation_id == Organisation.id)
        .group_by(Organisation.id)
    )
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.filter(
            or_(
                Organisation.name.ilike(pattern),
                Organisation.address.ilike(pattern),
                Organisation.contact_no.ilike(pattern),
            )
        )
    rows = query.order_by(Organisation.created_at.desc(), Organisation.id.desc()).all()
    return [_org_to_response(org, n) for org, n in rows]


@router.get("/{org_id}", response_model=OrganisationResponse)
async def get_organisation(org_id: int, db: Session = Depends(get_db)):
    org = _get_org_or_404(db, org_id)
    return _org_to_response(org, _job_count(db, org.id))


@router.post("", response_model=OrganisationResponse, status_code=201, dependencies=[Depends(require_admin)])
async def create_organisation(req: OrganisationCreate, db: Session = Depends(get_db)):
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    org = Organisation(
        name=req.name.strip(),
        contact_no=req.contact_no.strip(),
        office_hours=req.office_hours.strip(),
        address=req.address.strip(),
        created_at=now,
        updated_at=now,
    )
    db.add(org)
    db.commit()
    db.refresh(org)
    return _org_to_response(org, 0)


@router.patch("/{org_id}", response_model=OrganisationResponse, dependencies=[Depends(require_admin)])
async def update_organisation(org_id: int, req: OrganisationUpdate, db: Session = Depends(get_db)):
    org = _get_org_or_404(db, org_id)

    for key, value in req.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        setattr(org, key, value.strip())
    org.updated_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    db.commit()
    db.refresh(org)
    return _org_to_response(org, _job_count(db, org.id))


@router.delete("/{org_id}", dependencies=[Depends(require_admin)])
async def delete_organisation(org_id: int, db: Session = Depends(get_db)):
    org = _get_org_or_404(db, org_id)
    if _job_count(db, org.id):
        raise HTTPException(status_code=409, detail="Organisation still has jobs")
    db.delete(org)
    db.commit()
    return {"message": "Organisation deleted"}
