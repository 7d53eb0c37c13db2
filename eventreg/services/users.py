import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventreg.exceptions import Conflict, UserNotFound
from eventreg.models.user import User, UserRole
from eventreg.schemas.user import UserCreate, UserUpdate
from eventreg.services import mail
from eventreg.services.audit import record_audit
from eventreg.services.auth import create_verification
from eventreg.services.students import invalidate_student_caches
from eventreg.utils.files import discard_upload
from eventreg.utils.hashing import hash_password

logger = logging.getLogger("eventreg.users")


def _ensure_unique(db: Session, email: str, username=None, exclude_id=None) -> None:
    conditions = [User.email == email]
    if username:
        conditions.append(User.username == username)
    q = db.query(User).filter(or_(*conditions))
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    existing = q.first()
    if existing is None:
        return
    if existing.email == email:
        raise Conflict("Email already registered")
    raise Conflict("Username already taken")


def _new_user(data: UserCreate, role: UserRole) -> User:
    return User(
        email=data.email,
        username=data.username,
        password_hash=hash_password(data.password),
        role=role.value,
        first_name=data.first_name,
        last_name=data.last_name,
    )


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFound()
    return user


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.id).all()


def create_user(db: Session, data: UserCreate) -> dict:
    """
    Public sign-up: user, verification token and audit row are committed
    together, the verification mail goes out afterwards.
    """
    _ensure_unique(db, data.email, data.username)

    user = _new_user(data, UserRole.USER)
    try:
        db.add(user)
        db.flush()
        token = create_verification(db, user)
        record_audit(db, "USER_REGISTERED", user_id=user.id, metadata={"email": user.email})
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("Email or username already exists") from e

    logger.info("Registered user %s", user.id)

    try:
        mail.send_verification_email(user.email, token)
    except Exception:
        # the account exists; the user can ask for a new link
        logger.exception("Failed to send verification email to %s", user.email)

    return {
        "message": "Registration successful. Check your email to verify your account",
        "email": user.email,
    }


def create_admin(db: Session, data: UserCreate) -> User:
    _ensure_unique(db, data.email, data.username)

    admin = _new_user(data, UserRole.ADMIN)
    try:
        db.add(admin)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("Email or username already exists") from e

    db.refresh(admin)
    logger.info("Created admin %s", admin.id)
    return admin


def update_profile(db: Session, user: User, data: UserUpdate) -> User:
    fields = data.model_dump(exclude_unset=True)
    if fields.get("username"):
        _ensure_unique(db, user.email, fields["username"], exclude_id=user.id)

    for key, value in fields.items():
        setattr(user, key, value)

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("Username already taken") from e

    db.refresh(user)
    # cached student reads embed the user's email and username
    if user.student is not None:
        invalidate_student_caches(user.student.id)
    return user


def delete_profile(db: Session, user: User) -> None:
    """Delete the account; its student profile goes with it."""
    user_id = user.id
    student = user.student
    photo = student.profile_photo if student else None
    student_id = student.id if student else None

    db.delete(user)
    db.commit()

    if photo:
        discard_upload(photo)
    if student_id is not None:
        invalidate_student_caches(student_id)
    logger.info("Deleted user %s", user_id)
