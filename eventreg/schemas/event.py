from datetime import datetime
from typing import Optional

from pydantic import Field

from eventreg.models.event import LocationType
from eventreg.schemas.common import CamelModel
from eventreg.schemas.participant import ParticipantOut


class EventCreateIn(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    event_focus: Optional[str] = Field(None, max_length=200)
    description: str = Field(..., min_length=1)
    guest_name: Optional[str] = Field(None, max_length=100)
    guest_desc: Optional[str] = None
    date: datetime
    location: str = Field(..., min_length=1, max_length=255)
    location_type: LocationType


class EventUpdateIn(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    event_focus: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    guest_name: Optional[str] = Field(None, max_length=100)
    guest_desc: Optional[str] = None
    date: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    location_type: Optional[LocationType] = None


class EventRegistrationOut(CamelModel):
    id: int
    participant_id: int
    created_at: Optional[datetime] = None
    participant: ParticipantOut


class EventOut(CamelModel):
    id: int
    title: str
    event_focus: Optional[str] = None
    description: str
    guest_name: Optional[str] = None
    guest_desc: Optional[str] = None
    date: datetime
    location: str
    location_type: LocationType
    event_poster: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EventDetailOut(EventOut):
    registrations: list[EventRegistrationOut] = []


class EventMutationOut(CamelModel):
    status: str
    message: str
    event: Optional[EventOut] = None
