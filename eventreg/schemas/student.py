from datetime import date, datetime
from typing import Optional

from pydantic import Field, field_validator

from eventreg.schemas.common import CamelModel
from eventreg.schemas.user import UserBasicOut

NAME_PATTERN = r"^[a-zA-Z\s'-]+$"
SKILL_NAME_PATTERN = r"^[a-zA-Z0-9\s.+\-/#&()]+$"


def _max_enrollment_year() -> int:
    return date.today().year + 1


class SkillCreateIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=50, pattern=SKILL_NAME_PATTERN)
    years_of_experience: float = Field(..., ge=0, le=50)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Skill name cannot be empty")
        return v


class SkillUpdateIn(CamelModel):
    """One entry of the skills list on update; no id means a new skill."""

    id: Optional[int] = Field(None, ge=1)
    name: Optional[str] = Field(None, min_length=1, max_length=50, pattern=SKILL_NAME_PATTERN)
    years_of_experience: Optional[float] = Field(None, ge=0, le=50)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class StudentCreateIn(CamelModel):
    user_id: int = Field(..., ge=1)
    name: str = Field(..., min_length=2, max_length=100, pattern=NAME_PATTERN)
    registration_number: str = Field(..., min_length=1, max_length=32)
    course: str = Field(..., min_length=2, max_length=100)
    faculty: str = Field(..., min_length=2, max_length=100)
    enrollment_year: int = Field(..., ge=1900)
    graduated: bool = False
    profile_photo: Optional[str] = Field(None, max_length=500)
    skills: Optional[list[SkillCreateIn]] = None

    @field_validator("enrollment_year")
    @classmethod
    def not_in_future(cls, v: int) -> int:
        if v > _max_enrollment_year():
            raise ValueError(f"Enrollment year cannot be more than {_max_enrollment_year()}")
        return v


class StudentUpdateIn(CamelModel):
    """
    Partial update. Only fields present in ``model_fields_set`` are applied;
    ``profile_photo`` explicitly set to None means "remove the photo".
    """

    name: Optional[str] = Field(None, min_length=2, max_length=100, pattern=NAME_PATTERN)
    registration_number: Optional[str] = Field(None, min_length=1, max_length=32)
    course: Optional[str] = Field(None, min_length=2, max_length=100)
    faculty: Optional[str] = Field(None, min_length=2, max_length=100)
    enrollment_year: Optional[int] = Field(None, ge=1900)
    graduated: Optional[bool] = None
    profile_photo: Optional[str] = Field(None, max_length=500)
    skills: Optional[list[SkillUpdateIn]] = None

    @field_validator("enrollment_year")
    @classmethod
    def not_in_future(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v > _max_enrollment_year():
            raise ValueError(f"Enrollment year cannot be more than {_max_enrollment_year()}")
        return v


class SkillOut(CamelModel):
    id: int
    name: str
    years_of_experience: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StudentOut(CamelModel):
    id: int
    user_id: int
    name: str
    registration_number: str
    course: str
    faculty: str
    graduated: bool
    enrollment_year: int
    profile_photo: Optional[str] = None
    skills: list[SkillOut] = []
    user: UserBasicOut
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaginationMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class StudentListOut(CamelModel):
    data: list[StudentOut]
    meta: PaginationMeta
