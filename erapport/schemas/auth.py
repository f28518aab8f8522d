# erapport/schemas/auth.py - Account registration and login
from pydantic import BaseModel, EmailStr, field_validator


class RegisterIn(BaseModel):
    name: str
    email: EmailStr
    password: str

    @field_validator("name", "password")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v


class LoginIn(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    name: str
    email: str


class AuthOut(BaseModel):
    user: UserOut
    token: str
    token_type: str = "bearer"
