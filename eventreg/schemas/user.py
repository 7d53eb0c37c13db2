from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from eventreg.schemas.common import CamelModel

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class UserUpdate(CamelModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class UserOut(CamelModel):
    id: int
    email: str
    username: Optional[str] = None
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_email_verified: bool
    created_at: Optional[datetime] = None


class UserBasicOut(CamelModel):
    id: int
    email: str
    username: Optional[str] = None


class SignupOut(CamelModel):
    message: str
    email: str
