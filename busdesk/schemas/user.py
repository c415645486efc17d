from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional

from busdesk.roles import Role


class Principal(BaseModel):
    """The signed-in user as held in the session cookie."""

    id: int
    email: str
    first_name: str = ""
    last_name: str = ""
    phone_number: Optional[str] = None
    role: Role
    token: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email


class LoginForm(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class User(BaseModel):
    id: int
    email: str
    first_name: str = ""
    last_name: str = ""
    role: str
    phone_number: Optional[str] = None
    email_verified_at: Optional[str] = None
    is_active: Optional[bool] = None
    status_id: Optional[int] = None

    @property
    def is_email_verified(self) -> bool:
        return self.email_verified_at is not None

    class Config:
        extra = "ignore"


class UserForm(BaseModel):
    email: EmailStr
    first_name: str
    last_name: str
    role: Role
    phone_number: Optional[str] = None
    password: Optional[str] = None

    @field_validator("password", "phone_number", mode="before")
    @classmethod
    def blank_is_none(cls, value):
        return value or None


class Status(BaseModel):
    id: int
    name: str
    name_ka: Optional[str] = None
    color: str = "#000000"

    class Config:
        extra = "ignore"


class StatusForm(BaseModel):
    name: str
    name_ka: str = ""
    color: str = "#000000"
