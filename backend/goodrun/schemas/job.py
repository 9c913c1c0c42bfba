from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

Size = Literal["tiny", "small", "medium", "large"]
Priority = Literal["low", "medium", "high"]
Stage = Literal["available", "reserved", "in_delivery", "completed", "cancelled_in_delivery"]


def _normalise_choice(value):
    if isinstance(value, str):
        return value.strip().lower().replace(" ", "_")
    return value


class JobCreate(BaseModel):
    organisation_id: int | None = None
    # looked up case-insensitively when no id is given
    organisation_name: str | None = None
    name: str | None = None
    address: str = Field(min_length=1)
    weight: float = Field(ge=0)
    value: float = Field(ge=0)
    size: Size = "small"
    intake_priority: Priority = "medium"
    deadline_date: date
    follow_up: bool = False
    assigned_to: int | None = None

    @field_validator("size", "intake_priority", mode="before")
    @classmethod
    def normalise_choices(cls, value):
        return _normalise_choice(value)

    @model_validator(mode="after")
    def _require_organisation(self):
        if self.organisation_id is None and not (self.organisation_name or "").strip():
            raise ValueError("organisation_id or organisation_name is required")
        return self


class JobUpdate(BaseModel):
    organisation_id: int | None = None
    name: str | None = None
    address: str | None = Field(default=None, min_length=1)
    weight: float | None = Field(default=None, ge=0)
    value: float | None = Field(default=None, ge=0)
    size: Size | None = None
    intake_priority: Priority | None = None
    deadline_date: date | None = None
    follow_up: bool | None = None
    assigned_to: int | None = None
    progress_stage: Stage | None = None

    @field_validator("size", "intake_priority", "progress_stage", mode="before")
    @classmethod
    def normalise_choices(cls, value):
        return _normalise_choice(value)


class JobResponse(BaseModel):
    id: int
    organisation_id: int
    organisation_name: str | None
    name: str | None
    address: str | None
    weight: float | None
    value: float | None
    size: str | None
    intake_priority: str | None
    progress_stage: str
    follow_up: bool
    assigned_to: int | None
    assignee_name: str | None = None
    assignee_email: str | None = None
    deadline_date: str | None
    dropoff_date: str | None
    created_at: str
    updated_at: str


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
    page: int
    per_page: int


class JobViewResponse(BaseModel):
    jobs: list[JobResponse]


class TransitionResponse(BaseModel):
    message: str
    job: JobResponse
