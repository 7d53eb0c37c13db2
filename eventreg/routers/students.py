from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from eventreg.database import get_db
from eventreg.schemas.student import (
    SkillCreateIn,
    SkillOut,
    SkillUpdateIn,
    StudentCreateIn,
    StudentListOut,
    StudentOut,
    StudentUpdateIn,
)
from eventreg.services import students as student_service
from eventreg.utils.auth import require_admin
from eventreg.utils.forms import read_payload, validate_payload
from eventreg.utils.rate_limit import RateLimiter

router = APIRouter(prefix="/students", tags=["Students"], dependencies=[Depends(RateLimiter())])

SortBy = Literal["createdAt", "name", "registrationNumber", "enrollmentYear", "course", "faculty"]


# multipart/form-data: scalar fields, `skills` as a JSON array string and an
# optional `profilePhoto` file. application/json bodies are accepted as well.
@router.post("", response_model=StudentOut, status_code=status.HTTP_201_CREATED)
async def create_student(
    request: Request,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    payload, photo = await read_payload(request, "profilePhoto", json_list_fields=("skills",))
    data = validate_payload(StudentCreateIn, payload)
    return await run_in_threadpool(student_service.create_student, db, data, photo)


@router.get("", response_model=StudentListOut)
def list_students(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    course: Optional[str] = Query(None, max_length=100),
    faculty: Optional[str] = Query(None, max_length=100),
    graduated: Optional[bool] = Query(None),
    sort_by: SortBy = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
):
    return student_service.list_students(
        db,
        page=page,
        limit=limit,
        search=search.strip() if search else None,
        course=course.strip() if course else None,
        faculty=faculty.strip() if faculty else None,
        graduated=graduated,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/{student_id}", response_model=StudentOut)
def get_student(student_id: int, db: Session = Depends(get_db)):
    return student_service.get_student(db, student_id)


@router.patch("/{student_id}", response_model=StudentOut)
async def update_student(
    student_id: int,
    request: Request,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    payload, photo = await read_payload(
        request, "profilePhoto", json_list_fields=("skills",), removable=True
    )
    data = validate_payload(StudentUpdateIn, payload)
    return await run_in_threadpool(student_service.update_student, db, student_id, data, photo)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(student_id: int, db: Session = Depends(get_db), _admin=Depends(require_admin)):
    student_service.remove_student(db, student_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{student_id}/skills", response_model=SkillOut, status_code=status.HTTP_201_CREATED)
def add_skill(
    student_id: int,
    body: SkillCreateIn,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    return student_service.add_skill(db, student_id, body)


@router.patch("/{student_id}/skills/{skill_id}", response_model=SkillOut)
def update_skill(
    student_id: int,
    skill_id: int,
    body: SkillUpdateIn,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    return student_service.update_skill(db, student_id, skill_id, body)


@router.delete("/{student_id}/skills/{skill_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_skill(
    student_id: int,
    skill_id: int,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    student_service.remove_skill(db, student_id, skill_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
