from typing import Literal

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    role: Literal["admin", "volunteer"]
    password: str = Field(min_length=8, max_length=128)
    phone_no: str | None = None


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    role: Literal["admin", "volunteer"] | None = None
    password: str | None = Field(default=None, min_length=8, max_length=128)
    phone_no: str | None = None


class UserResponse(BaseModel):
    id: int
    name: str | None
    email: str
    role: str
    phone_no: str | None
    birthday: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class ProfileResponse(UserResponse):
    pickups_finished: int = 0
