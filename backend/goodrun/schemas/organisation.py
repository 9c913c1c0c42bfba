from pydantic import BaseModel, Field


class OrganisationCreate(BaseModel):
    name: str = Field(min_length=1)
    contact_no: str = Field(min_length=1)
    office_hours: str = Field(min_length=1)
    address: str = Field(min_length=1)


class OrganisationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    contact_no: str | None = None
    office_hours: str | None = None
    address: str | None = None


class OrganisationResponse(BaseModel):
    id: int
    name: str
    contact_no: str | None
    office_hours: str | None
    address: str | None
    created_at: str
    updated_at: str
    job_count: int = 0
