from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from eventreg.database import get_db
from eventreg.schemas.event import EventCreateIn, EventDetailOut, EventMutationOut, EventOut, EventUpdateIn
from eventreg.schemas.participant import ParticipantOut
from eventreg.services import events as event_service
from eventreg.utils.auth import require_admin
from eventreg.utils.excel_export import PARTICIPANT_COLUMNS, make_filename, participants_to_rows, rows_to_xlsx_bytes
from eventreg.utils.forms import read_payload, validate_payload

router = APIRouter(prefix="/event", tags=["Events"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _mutation(message: str, event=None) -> dict:
    return {
        "status": "success",
        "message": message,
        "event": EventOut.model_validate(event) if event is not None else None,
    }


@router.post("", response_model=EventMutationOut, status_code=status.HTTP_201_CREATED)
async def create_event(request: Request, db: Session = Depends(get_db), _admin=Depends(require_admin)):
    payload, poster = await read_payload(request, "eventPoster")
    data = validate_payload(EventCreateIn, payload)
    event = await run_in_threadpool(event_service.create_event, db, data, poster)
    return _mutation("Event created successfully", event)


@router.get("", response_model=list[EventDetailOut])
def list_events(db: Session = Depends(get_db)):
    return event_service.list_events(db)


@router.get("/{event_id}", response_model=EventDetailOut)
def get_event(event_id: int, db: Session = Depends(get_db)):
    return event_service.get_event(db, event_id)


@router.patch("/{event_id}", response_model=EventMutationOut)
async def update_event(
    event_id: int,
    request: Request,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    payload, poster = await read_payload(request, "eventPoster")
    data = validate_payload(EventUpdateIn, payload)
    event = await run_in_threadpool(event_service.update_event, db, event_id, data, poster)
    return _mutation("Event updated successfully", event)


@router.delete("/{event_id}", response_model=EventMutationOut)
def delete_event(event_id: int, db: Session = Depends(get_db), _admin=Depends(require_admin)):
    event_service.delete_event(db, event_id)
    return _mutation("Event deleted successfully")


@router.get("/{event_id}/participants", response_model=list[ParticipantOut])
def list_event_participants(event_id: int, db: Session = Depends(get_db)):
    event = event_service.get_event(db, event_id)
    return [reg.participant for reg in event.registrations]


@router.get("/{event_id}/participants/export")
def export_event_participants(event_id: int, db: Session = Depends(get_db), _admin=Depends(require_admin)):
    """Registered participants of one event as an .xlsx download."""
    event = event_service.get_event(db, event_id)

    xlsx_bytes = rows_to_xlsx_bytes(participants_to_rows(event), PARTICIPANT_COLUMNS)
    filename = make_filename(f"event_{event_id}_participants")

    return StreamingResponse(
        iter([xlsx_bytes]),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
