# FILE: thumbcraft/schemas/auth.py
from pydantic import BaseModel, ConfigDict, validator


class UserCreate(BaseModel):
    email: str
    password: str
    name: str

    @validator("email")
    def validate_email(cls, v: str):
        v = (v or "").strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("A valid email address is required")
        return v

    @validator("password")
    def validate_password(cls, v: str):
        if not v or len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v

    @validator("name")
    def validate_name(cls, v: str):
        if not v or not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()


class UserLogin(BaseModel):
    email: str
    password: str

    @validator("email")
    def normalize_email(cls, v: str):
        return (v or "").strip().lower()


class UserResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str
    email: str
    name: str
    created_at: str


class TokenResponse(BaseModel):
    token: str
    user: UserResponse
