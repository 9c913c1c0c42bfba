from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy import func, text
from sqlalchemy.orm import Session

from goodrun.database import get_db
from goodrun.dependencies import require_admin
from goodrun.models.job import STAGES, Job

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
    dependencies=[Depends(require_admin)],
)


def _pct(num: int, denom: int) -> float | None:
    return round(num / denom * 100, 1) if denom > 0 else None


@router.get("")
async def get_analytics(db: Session = Depends(get_db)):
    # --- Stage breakdown ---
    stage_rows = (
        db.query(Job.progress_stage, func.count(Job.id).label("n"))
        .group_by(Job.progress_stage)
        .all()
    )
    by_stage: dict[str, int] = {stage: 0 for stage in STAGES}
    by_stage.update({row.progress_stage: row.n for row in stage_rows})
    total_jobs = sum(by_stage.values())

    completed_count = by_stage["completed"]
    cancelled_count = by_stage["cancelled_in_delivery"]

    # --- Open follow-ups: cancelled mid-delivery and not yet requeued ---
    follow_up_open = (
        db.query(func.count(Job.id))
        .filter(Job.follow_up.is_(True), Job.progress_stage == "cancelled_in_delivery")
        .scalar()
    )

    # --- Overdue: deadline passed and the pickup is still open ---
    overdue_row = db.execute(
        text("""
            SELECT COUNT(*) AS n FROM jobs
            WHERE deadline_date < :today
            AND progress_stage IN ('available', 'reserved', 'in_delivery')
        """),
        {"today": date.today().isoformat()},
    ).fetchone()
    overdue_count = overdue_row.n if overdue_row else 0

    # --- Top volunteers by finished pickups ---
    volunteer_rows = db.execute(
        text("""
            SELECT
                u.id AS user_id,
                COALESCE(u.name, u.email) AS name,
                COUNT(*) AS completed,
                COALESCE(SUM(j.weight), 0) AS weight
            FROM jobs j
            JOIN users u ON u.id = j.assigned_to
            WHERE j.progress_stage = 'completed'
            GROUP BY u.id
            ORDER BY completed DESC, u.id ASC
            LIMIT 10
        """)
    ).fetchall()
    top_volunteers = [
        {
            "user_id": r.user_id,
            "name": r.name,
            "completed": r.completed,
            "weight": r.weight,
        }
        for r in volunteer_rows
    ]

    return {
        "total_jobs": total_jobs,
        "by_stage": by_stage,
        "completed_count": completed_count,
        "completion_rate": _pct(completed_count, total_jobs),
        "cancelled_count": cancelled_count,
        "follow_up_open": follow_up_open,
        "overdue_count": overdue_count,
        "top_volunteers": top_volunteers,
    }
