from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from eventreg.database import get_db
from eventreg.schemas.participant import (
    ParticipantCreate,
    ParticipantMutationOut,
    ParticipantOut,
    RegisterParticipantIn,
    RegisterParticipantOut,
)
from eventreg.services import participants as participant_service
from eventreg.utils.auth import require_admin

router = APIRouter(prefix="/participant", tags=["Participants"])


@router.post("", response_model=ParticipantMutationOut, status_code=status.HTTP_201_CREATED)
def create_participant(body: ParticipantCreate, db: Session = Depends(get_db)):
    participant = participant_service.create_participant(db, body)
    return {"status": "success", "message": "Participant created successfully", "participant": participant}


@router.post("/register-participant", response_model=RegisterParticipantOut, status_code=status.HTTP_201_CREATED)
def register_participant(body: RegisterParticipantIn, db: Session = Depends(get_db)):
    registration = participant_service.register_participant(db, body)
    return {
        "status": "success",
        "message": "Participant registered successfully",
        "registration_id": registration.id,
        "event_id": registration.event_id,
        "participant": registration.participant,
    }


@router.get("", response_model=list[ParticipantOut])
def list_participants(db: Session = Depends(get_db)):
    return participant_service.list_participants(db)


@router.get("/{participant_id}", response_model=ParticipantOut)
def get_participant(participant_id: int, db: Session = Depends(get_db)):
    return participant_service.get_participant(db, participant_id)


@router.delete("/{participant_id}", response_model=ParticipantMutationOut)
def delete_participant(participant_id: int, db: Session = Depends(get_db), _admin=Depends(require_admin)):
    participant = participant_service.delete_participant(db, participant_id)
    return {"status": "success", "message": "Participant deleted successfully", "participant": participant}
