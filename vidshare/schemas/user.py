from datetime import datetime
from pydantic import BaseModel, Field


class UserBase(BaseModel):
    name: str
    email: str


class UserResponse(UserBase):
    id: str
    subscribers: int = 0

    class Config:
        from_attributes = True


class ChannelProfileResponse(BaseModel):
    """Public channel page: no credential fields."""
    id: str
    name: str
    email: str
    subscribers: int
    created_at: datetime = Field(alias="createdAt")

    class Config:
        from_attributes = True
        populate_by_name = True


class TokenPayload(BaseModel):
    sub: str  # user id
    email: str
    exp: int
    type: str = "access"


class RegisterRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserResponse
