from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    expires_in_seconds: int
    user_id: int
    role: str


class LoginThrottleResponse(BaseModel):
    error: str
    retry_after_seconds: float


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str = Field(min_length=8, max_length=128)
