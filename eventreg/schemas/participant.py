from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from eventreg.schemas.common import CamelModel


class ParticipantCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=30)
    sex: Optional[str] = Field(None, max_length=16)


class RegisterParticipantIn(ParticipantCreate):
    event_id: int = Field(..., ge=1)


class ParticipantOut(CamelModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    sex: Optional[str] = None
    created_at: Optional[datetime] = None


class ParticipantMutationOut(CamelModel):
    status: str
    message: str
    participant: ParticipantOut


class RegisterParticipantOut(CamelModel):
    status: str
    message: str
    registration_id: int
    event_id: int
    participant: ParticipantOut
