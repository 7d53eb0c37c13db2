"""
Student profiles and their skills.

Every write runs in a single transaction. Uploaded photos are saved before the
transaction starts, so any failure afterwards removes the freshly saved file
again; replaced or removed photos are only deleted once the new state is
committed.
"""

import json
import logging
import math
from typing import NoReturn, Optional

from fastapi import UploadFile
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from eventreg.config import settings
from eventreg.exceptions import BadRequest, Conflict, InternalError, NotFound
from eventreg.models.student import Student
from eventreg.models.student_skill import StudentSkill
from eventreg.models.user import User
from eventreg.schemas.student import (
    PaginationMeta,
    SkillCreateIn,
    SkillOut,
    SkillUpdateIn,
    StudentCreateIn,
    StudentListOut,
    StudentOut,
    StudentUpdateIn,
)
from eventreg.utils.cache import cache
from eventreg.utils.files import discard_upload, save_upload

logger = logging.getLogger("eventreg.students")

CACHE_PREFIX = "student"
PHOTO_FIELD = "profilePhoto"

SORTABLE_COLUMNS = {
    "createdAt": Student.created_at,
    "name": Student.name,
    "registrationNumber": Student.registration_number,
    "enrollmentYear": Student.enrollment_year,
    "course": Student.course,
    "faculty": Student.faculty,
}


# ----------------------------
# helpers
# ----------------------------
def invalidate_student_caches(student_id: Optional[int] = None) -> None:
    cache.delete_pattern(f"{CACHE_PREFIX}:list:*")
    if student_id is not None:
        cache.delete(f"{CACHE_PREFIX}:{student_id}")


def _integrity_error(exc: IntegrityError) -> Exception:
    msg = str(exc.orig).lower()
    if "foreign key" in msg:
        return BadRequest("Invalid reference to related data")
    if "student_skills" in msg or "student_id_name" in msg:
        return Conflict("Skill already exists for this student")
    if "registration_number" in msg:
        return Conflict("Student with this registration number already exists")
    if "user_id" in msg:
        return Conflict("User already has a student profile")
    return Conflict()


def _reraise(exc: Exception, operation: str) -> NoReturn:
    """Translate store errors into API errors; anything else propagates unchanged."""
    if isinstance(exc, IntegrityError):
        logger.warning("Integrity error during %s: %s", operation, exc.orig)
        raise _integrity_error(exc) from exc
    if isinstance(exc, SQLAlchemyError):
        logger.error("Database error during %s: %s", operation, exc)
        raise InternalError(f"Failed to {operation} due to a database error") from exc
    raise exc


def _student_query(db: Session):
    return db.query(Student).options(selectinload(Student.skills), joinedload(Student.user))


def _get_student(db: Session, student_id: int) -> Student:
    student = _student_query(db).filter(Student.id == student_id).first()
    if not student:
        raise NotFound(f"Student with ID {student_id} not found")
    return student


def _get_skill(db: Session, student_id: int, skill_id: int) -> StudentSkill:
    skill = (
        db.query(StudentSkill)
        .filter(StudentSkill.id == skill_id, StudentSkill.student_id == student_id)
        .first()
    )
    if not skill:
        raise NotFound(f"Skill with ID {skill_id} not found for student {student_id}")
    return skill


def _ensure_skill_name_free(db: Session, student_id: int, name: str) -> None:
    exists = (
        db.query(StudentSkill.id)
        .filter(StudentSkill.student_id == student_id, StudentSkill.name == name)
        .first()
    )
    if exists:
        raise Conflict(f"Skill '{name}' already exists for this student")


def _to_out(student: Student) -> StudentOut:
    return StudentOut.model_validate(student)


# ----------------------------
# create
# ----------------------------
def _ensure_user_can_have_profile(db: Session, user_id: int) -> None:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound(f"User with ID {user_id} not found")
    if user.student is not None:
        raise Conflict(f"User with ID {user_id} already has a student profile")


def create_student(db: Session, data: StudentCreateIn, photo: Optional[UploadFile] = None) -> StudentOut:
    logger.debug("Creating student profile for userId: %s", data.user_id)

    # not atomic with the insert below; the unique user_id constraint catches the race
    _ensure_user_can_have_profile(db, data.user_id)

    saved_photo = None
    try:
        if photo is not None:
            saved_photo = save_upload(photo, PHOTO_FIELD)
            profile_photo = saved_photo
        else:
            profile_photo = data.profile_photo

        student = Student(
            user_id=data.user_id,
            name=data.name.strip(),
            registration_number=data.registration_number.strip().upper(),
            course=data.course.strip(),
            faculty=data.faculty.strip(),
            graduated=data.graduated,
            enrollment_year=data.enrollment_year,
            profile_photo=profile_photo,
        )

        seen = set()
        for item in data.skills or []:
            if item.name in seen:
                raise Conflict(f"Skill '{item.name}' is listed more than once")
            seen.add(item.name)
            student.skills.append(StudentSkill(name=item.name, years_of_experience=item.years_of_experience))

        db.add(student)
        db.commit()
    except Exception as e:
        db.rollback()
        if saved_photo:
            discard_upload(saved_photo)
        _reraise(e, "create student profile")

    invalidate_student_caches()
    logger.info("Created student profile %s for user %s", student.id, student.user_id)
    return _to_out(student)


# ----------------------------
# read
# ----------------------------
def list_students(
    db: Session,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    course: Optional[str] = None,
    faculty: Optional[str] = None,
    graduated: Optional[bool] = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> StudentListOut:
    query_key = json.dumps(
        {
            "page": page,
            "limit": limit,
            "search": search,
            "course": course,
            "faculty": faculty,
            "graduated": graduated,
            "sortBy": sort_by,
            "sortOrder": sort_order,
        },
        sort_keys=True,
    )
    cache_key = f"{CACHE_PREFIX}:list:{query_key}"
    cached = cache.get(cache_key)
    if cached is not None:
        logger.debug("Returning cached student list")
        return cached

    q = db.query(Student)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Student.name.ilike(like), Student.registration_number.ilike(like)))
    if course:
        q = q.filter(Student.course.ilike(f"%{course}%"))
    if faculty:
        q = q.filter(Student.faculty.ilike(f"%{faculty}%"))
    if graduated is not None:
        q = q.filter(Student.graduated == graduated)

    try:
        total = q.count()

        column = SORTABLE_COLUMNS.get(sort_by, Student.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()
        students = (
            q.options(selectinload(Student.skills), joinedload(Student.user))
            .order_by(order, Student.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        _reraise(e, "retrieve students")

    total_pages = math.ceil(total / limit) if limit else 0
    result = StudentListOut(
        data=[_to_out(s) for s in students],
        meta=PaginationMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )
    cache.set(cache_key, result, ttl=settings.CACHE_TTL_SECONDS)
    return result


def get_student(db: Session, student_id: int) -> StudentOut:
    cache_key = f"{CACHE_PREFIX}:{student_id}"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    result = _to_out(_get_student(db, student_id))
    cache.set(cache_key, result, ttl=settings.CACHE_TTL_SECONDS)
    return result


# ----------------------------
# update
# ----------------------------
def _apply_scalars(student: Student, data: StudentUpdateIn) -> None:
    if data.name is not None:
        student.name = data.name.strip()
    if data.registration_number is not None:
        student.registration_number = data.registration_number.strip().upper()
    if data.course is not None:
        student.course = data.course.strip()
    if data.faculty is not None:
        student.faculty = data.faculty.strip()
    if data.graduated is not None:
        student.graduated = data.graduated
    if data.enrollment_year is not None:
        student.enrollment_year = data.enrollment_year


def _reconcile_skills(db: Session, student: Student, incoming: list[SkillUpdateIn]) -> None:
    """
    Sync the student's skills with ``incoming``:
    ids not mentioned are deleted, known ids are updated in place and entries
    without an id are inserted.
    """
    existing = {skill.id: skill for skill in student.skills}
    keep_ids = {item.id for item in incoming if item.id is not None}

    unknown = sorted(keep_ids - existing.keys())
    if unknown:
        raise NotFound(f"Skill with ID {unknown[0]} not found for student {student.id}")

    for skill in list(student.skills):
        if skill.id not in keep_ids:
            student.skills.remove(skill)
    # deletes must reach the DB before a re-added name is inserted
    db.flush()

    renames = {}
    for item in incoming:
        if item.id is None:
            continue
        skill = existing[item.id]
        if item.name and item.name != skill.name:
            renames[skill] = item.name
        if item.years_of_experience is not None:
            skill.years_of_experience = item.years_of_experience

    taken = set()
    for skill in student.skills:
        name = renames.get(skill, skill.name)
        if name in taken:
            raise Conflict(f"Skill '{name}' already exists for this student")
        taken.add(name)

    if renames:
        # park renamed rows on unique placeholders so swapped names never
        # collide on (student_id, name) while the UPDATEs are applied
        for skill in renames:
            skill.name = f"~renaming-{skill.id}"
        db.flush()
        for skill, name in renames.items():
            skill.name = name

    for item in incoming:
        if item.id is not None:
            continue
        if not item.name:
            raise BadRequest("Skill name is required for new skills")
        if item.name in taken:
            raise Conflict(f"Skill '{item.name}' already exists for this student")
        taken.add(item.name)
        student.skills.append(
            StudentSkill(name=item.name, years_of_experience=item.years_of_experience or 0)
        )


def update_student(
    db: Session,
    student_id: int,
    data: StudentUpdateIn,
    photo: Optional[UploadFile] = None,
) -> StudentOut:
    logger.debug("Updating student profile for ID: %s", student_id)
    student = _get_student(db, student_id)

    saved_photo = None
    stale_photo = None
    try:
        # new file > explicit removal > literal reference > unchanged
        if photo is not None:
            saved_photo = save_upload(photo, PHOTO_FIELD)
            if student.profile_photo and student.profile_photo != saved_photo:
                stale_photo = student.profile_photo
            student.profile_photo = saved_photo
        elif "profile_photo" in data.model_fields_set and data.profile_photo is None:
            stale_photo = student.profile_photo
            student.profile_photo = None
        elif data.profile_photo is not None:
            student.profile_photo = data.profile_photo

        _apply_scalars(student, data)
        if data.skills is not None:
            _reconcile_skills(db, student, data.skills)

        db.commit()
    except Exception as e:
        db.rollback()
        if saved_photo:
            discard_upload(saved_photo)
        _reraise(e, f"update student with ID {student_id}")

    if stale_photo:
        discard_upload(stale_photo)

    invalidate_student_caches(student_id)
    logger.info("Updated student profile %s", student_id)
    return _to_out(student)


# ----------------------------
# delete
# ----------------------------
def remove_student(db: Session, student_id: int) -> None:
    student = _get_student(db, student_id)
    photo = student.profile_photo

    try:
        db.delete(student)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        _reraise(e, f"delete student with ID {student_id}")

    if photo:
        discard_upload(photo)

    invalidate_student_caches(student_id)
    logger.info("Deleted student profile %s", student_id)


# ----------------------------
# single skills
# ----------------------------
def add_skill(db: Session, student_id: int, data: SkillCreateIn) -> SkillOut:
    _get_student(db, student_id)
    _ensure_skill_name_free(db, student_id, data.name)

    skill = StudentSkill(student_id=student_id, name=data.name, years_of_experience=data.years_of_experience)
    try:
        db.add(skill)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        _reraise(e, f"add skill to student {student_id}")

    invalidate_student_caches(student_id)
    logger.info("Added skill '%s' to student %s", skill.name, student_id)
    return SkillOut.model_validate(skill)


def update_skill(db: Session, student_id: int, skill_id: int, data: SkillUpdateIn) -> SkillOut:
    _get_student(db, student_id)
    skill = _get_skill(db, student_id, skill_id)

    if data.name and data.name != skill.name:
        _ensure_skill_name_free(db, student_id, data.name)

    try:
        if data.name:
            skill.name = data.name
        if data.years_of_experience is not None:
            skill.years_of_experience = data.years_of_experience
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        _reraise(e, f"update skill {skill_id} for student {student_id}")

    invalidate_student_caches(student_id)
    return SkillOut.model_validate(skill)


def remove_skill(db: Session, student_id: int, skill_id: int) -> None:
    _get_student(db, student_id)
    skill = _get_skill(db, student_id, skill_id)

    try:
        db.delete(skill)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        _reraise(e, f"remove skill {skill_id} from student {student_id}")

    invalidate_student_caches(student_id)
    logger.info("Removed skill %s from student %s", skill_id, student_id)
