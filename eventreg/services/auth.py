"""Login, token refresh, email verification and password reset flows."""

import logging
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventreg.config import settings
from eventreg.exceptions import BadRequest, EmailNotVerified, InvalidCredentials, NotFound, UserNotFound
from eventreg.models.email_verification import EmailVerification
from eventreg.models.password_reset_token import PasswordResetToken
from eventreg.models.user import User, UserRole
from eventreg.services import mail
from eventreg.services.audit import log_audit_event, record_audit
from eventreg.utils.auth import REFRESH, create_access_token, create_refresh_token, verify_token_of_type
from eventreg.utils.hashing import hash_password, verify_password
from eventreg.utils.password_reset import generate_reset_token, generate_verification_token, hash_token
from eventreg.utils.timeutils import utcnow

logger = logging.getLogger("eventreg.auth")


def validate_user(db: Session, email: str, password: str) -> dict:
    """
    Check credentials and issue an access/refresh token pair.

    Unknown email and wrong password fail with the same error so the endpoint
    can't be used to probe which emails are registered.
    """
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt for %s", email)
        raise InvalidCredentials()

    if not user.is_email_verified and user.role != UserRole.ADMIN:
        raise EmailNotVerified()

    logger.info("User %s logged in", user.id)
    return {
        "user": user,
        "access_token": create_access_token(user),
        "refresh_token": create_refresh_token(user),
    }


def refresh(db: Session, refresh_token: str) -> dict:
    payload = verify_token_of_type(refresh_token, REFRESH)

    # role comes from the store, never from the old token
    user = db.query(User).filter(User.email == payload.get("email")).first()
    if not user:
        raise UserNotFound()

    return {"access_token": create_access_token(user)}


def create_verification(db: Session, user: User) -> str:
    token = generate_verification_token()
    db.add(EmailVerification(
        user_id=user.id,
        token=token,
        expires_at=utcnow() + timedelta(seconds=settings.EMAIL_TOKEN_EXPIRATION),
    ))
    return token


def verify_email(db: Session, token: str) -> None:
    verification = db.query(EmailVerification).filter(EmailVerification.token == token).first()
    if not verification:
        raise NotFound("Invalid verification token")

    if verification.expires_at < utcnow():
        raise BadRequest("Verification token has expired")

    verification.user.is_email_verified = True
    db.delete(verification)
    db.commit()
    logger.info("Email verified for user %s", verification.user_id)


def resend_verification(db: Session, email: str) -> None:
    """Silent for unknown and already verified addresses; failures are only logged."""
    user = db.query(User).filter(User.email == email).first()
    if not user or user.is_email_verified:
        return

    try:
        db.query(EmailVerification).filter(EmailVerification.user_id == user.id).delete()
        token = create_verification(db, user)
        db.commit()
        mail.send_verification_email(user.email, token)
        log_audit_event(db, "VERIFICATION_EMAIL_RESENT", user_id=user.id, metadata={"email": user.email})
    except Exception:
        db.rollback()
        logger.exception("Failed to resend verification email to %s", email)


def request_password_reset(db: Session, email: str) -> None:
    """
    Issue a single-use reset token and mail it.

    Never reveals whether the address exists; any failure is logged and
    written to the audit trail instead of reaching the caller.
    """
    user = db.query(User).filter(User.email == email).first()
    if not user:
        return

    try:
        plain_token = generate_reset_token()
        db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).delete()
        db.add(PasswordResetToken(
            user_id=user.id,
            token_hash=hash_token(plain_token),
            expires_at=utcnow() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
        ))
        db.commit()

        mail.send_password_reset_email(user.email, plain_token)
        log_audit_event(db, "PASSWORD_RESET_REQUESTED", user_id=user.id, metadata={"email": user.email})
    except Exception as e:
        db.rollback()
        logger.exception("Password reset request error for %s", email)
        log_audit_event(db, "PASSWORD_RESET_REQUEST_ERROR", metadata={"error": str(e)})


def reset_password(db: Session, token: str, new_password: str) -> None:
    now = utcnow()
    row = (
        db.query(PasswordResetToken)
        .filter(
            PasswordResetToken.token_hash == hash_token(token),
            PasswordResetToken.used_at.is_(None),
            PasswordResetToken.expires_at > now,
        )
        .first()
    )
    if not row:
        raise NotFound("Invalid or expired reset token")

    user = row.user
    try:
        user.password_hash = hash_password(new_password)
        row.used_at = now
        record_audit(db, "PASSWORD_RESET_COMPLETED", user_id=user.id, metadata={"email": user.email})
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Password reset completed for user %s", user.id)
