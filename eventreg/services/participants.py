import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventreg.exceptions import Conflict, NotFound
from eventreg.models.event import Event
from eventreg.models.participant import Participant
from eventreg.models.registration import Registration
from eventreg.schemas.participant import ParticipantCreate, ParticipantOut, RegisterParticipantIn

logger = logging.getLogger("eventreg.participants")


def list_participants(db: Session) -> list[Participant]:
    return db.query(Participant).order_by(Participant.id).all()


def get_participant(db: Session, participant_id: int) -> Participant:
    participant = db.query(Participant).filter(Participant.id == participant_id).first()
    if not participant:
        raise NotFound(f"Participant with ID {participant_id} not found")
    return participant


def create_participant(db: Session, data: ParticipantCreate) -> Participant:
    if db.query(Participant.id).filter(Participant.email == data.email).first():
        raise Conflict("Participant with this email already exists")

    participant = Participant(name=data.name.strip(), email=data.email, phone=data.phone, sex=data.sex)
    try:
        db.add(participant)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("Participant with this email already exists") from e

    db.refresh(participant)
    return participant


def register_participant(db: Session, data: RegisterParticipantIn) -> Registration:
    """
    Register someone for an event. A participant is identified by email and
    reused across events; the stored contact details are refreshed.
    """
    event = db.query(Event).filter(Event.id == data.event_id).first()
    if not event:
        raise NotFound(f"Event with ID {data.event_id} not found")

    participant = db.query(Participant).filter(Participant.email == data.email).first()
    if participant is None:
        participant = Participant(email=data.email)
        db.add(participant)
    participant.name = data.name.strip()
    if data.phone is not None:
        participant.phone = data.phone
    if data.sex is not None:
        participant.sex = data.sex

    if participant.id is not None:
        already = (
            db.query(Registration.id)
            .filter(Registration.event_id == event.id, Registration.participant_id == participant.id)
            .first()
        )
        if already:
            db.rollback()
            raise Conflict("Participant is already registered for this event")

    registration = Registration(event=event, participant=participant)
    try:
        db.add(registration)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("Participant is already registered for this event") from e

    db.refresh(registration)
    logger.info("Registered participant %s for event %s", participant.id, event.id)
    return registration


def delete_participant(db: Session, participant_id: int) -> ParticipantOut:
    participant = get_participant(db, participant_id)
    snapshot = ParticipantOut.model_validate(participant)
    db.delete(participant)
    db.commit()
    logger.info("Deleted participant %s", participant_id)
    return snapshot
