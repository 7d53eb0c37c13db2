from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from eventreg.database import Base


class LocationType(str, Enum):
    ONLINE = "ONLINE"
    ONSITE = "ONSITE"


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    event_focus = Column(String(200), nullable=True)
    description = Column(Text, nullable=False)
    guest_name = Column(String(100), nullable=True)
    guest_desc = Column(Text, nullable=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    location = Column(String(255), nullable=False)
    location_type = Column(String(16), nullable=False, default=LocationType.ONSITE.value)
    event_poster = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    registrations = relationship(
        "Registration",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Registration.id",
    )
