import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session, selectinload

from eventreg.exceptions import NotFound
from eventreg.models.event import Event
from eventreg.models.registration import Registration
from eventreg.schemas.event import EventCreateIn, EventUpdateIn
from eventreg.utils.files import discard_upload, save_upload

logger = logging.getLogger("eventreg.events")

POSTER_FIELD = "eventPoster"


def _with_participants(db: Session):
    return db.query(Event).options(
        selectinload(Event.registrations).selectinload(Registration.participant)
    )


def get_event(db: Session, event_id: int) -> Event:
    event = _with_participants(db).filter(Event.id == event_id).first()
    if not event:
        raise NotFound(f"Event with ID {event_id} not found")
    return event


def list_events(db: Session) -> list[Event]:
    return _with_participants(db).order_by(Event.date.asc(), Event.id).all()


def create_event(db: Session, data: EventCreateIn, poster: Optional[UploadFile] = None) -> Event:
    saved = save_upload(poster, POSTER_FIELD) if poster is not None else None

    event = Event(
        title=data.title.strip(),
        event_focus=data.event_focus,
        description=data.description,
        guest_name=data.guest_name,
        guest_desc=data.guest_desc,
        date=data.date,
        location=data.location.strip(),
        location_type=data.location_type.value,
        event_poster=saved,
    )
    try:
        db.add(event)
        db.commit()
    except Exception:
        db.rollback()
        if saved:
            discard_upload(saved)
        raise

    db.refresh(event)
    logger.info("Created event %s", event.id)
    return event


def update_event(
    db: Session,
    event_id: int,
    data: EventUpdateIn,
    poster: Optional[UploadFile] = None,
) -> Event:
    event = get_event(db, event_id)

    saved = save_upload(poster, POSTER_FIELD) if poster is not None else None
    old_poster = event.event_poster if saved else None

    fields = data.model_dump(exclude_unset=True)
    if "location_type" in fields and fields["location_type"] is not None:
        fields["location_type"] = fields["location_type"].value
    try:
        for key, value in fields.items():
            setattr(event, key, value)
        if saved:
            event.event_poster = saved
        db.commit()
    except Exception:
        db.rollback()
        if saved:
            discard_upload(saved)
        raise

    if old_poster and old_poster != saved:
        discard_upload(old_poster)

    db.refresh(event)
    logger.info("Updated event %s", event_id)
    return event


def delete_event(db: Session, event_id: int) -> None:
    event = get_event(db, event_id)
    poster = event.event_poster

    db.delete(event)
    db.commit()

    if poster:
        discard_upload(poster)
    logger.info("Deleted event %s", event_id)
