from pydantic import BaseModel


class JobEventResponse(BaseModel):
    id: int
    job_id: int
    event: str
    from_stage: str | None
    to_stage: str
    actor_id: int | None
    occurred_at: str

    model_config = {"from_attributes": True}
