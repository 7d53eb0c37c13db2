import re

from pydantic import EmailStr, Field, field_validator

from eventreg.schemas.common import CamelModel
from eventreg.schemas.user import UserOut

# at least one upper, one lower, and a digit or special character
PASSWORD_RULE = re.compile(r"(?=.*[A-Z])(?=.*[a-z])(?=.*(\d|\W))")


class LoginIn(CamelModel):
    # plain str: a malformed email must fail exactly like an unknown one
    email: str
    password: str


class LoginOut(CamelModel):
    user: UserOut
    access_token: str
    refresh_token: str


class RefreshIn(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class AccessTokenOut(CamelModel):
    access_token: str


class ForgotPasswordIn(CamelModel):
    email: EmailStr


class ResendVerificationIn(CamelModel):
    email: EmailStr


class ResetPasswordIn(CamelModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=72)

    @field_validator("password")
    @classmethod
    def check_strength(cls, v: str) -> str:
        if not PASSWORD_RULE.search(v):
            raise ValueError(
                "Password must contain at least 1 uppercase letter, 1 lowercase letter, "
                "and 1 number or special character"
            )
        return v
