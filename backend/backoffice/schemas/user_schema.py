from typing import Optional

from pydantic import BaseModel, Field


class LoginIn(BaseModel):
    email: str
    password: str


class RegisterIn(BaseModel):
    email: str
    password: str = Field(..., min_length=6)
    name: Optional[str] = None


class RoleChangeIn(BaseModel):
    role: str
