import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from eventreg.models.email_verification import EmailVerification
from eventreg.models.password_reset_token import PasswordResetToken
from eventreg.services.audit import record_audit
from eventreg.utils.timeutils import utcnow

logger = logging.getLogger("eventreg.cleanup")


def cleanup_expired_tokens(db: Session) -> dict:
    """
    Delete reset tokens that are expired or already used, and expired email
    verifications. Returns the number of rows removed per table.
    """
    now = utcnow()

    reset_deleted = (
        db.query(PasswordResetToken)
        .filter(or_(PasswordResetToken.expires_at < now, PasswordResetToken.used_at.isnot(None)))
        .delete(synchronize_session=False)
    )
    verifications_deleted = (
        db.query(EmailVerification)
        .filter(EmailVerification.expires_at < now)
        .delete(synchronize_session=False)
    )

    counts = {"resetTokens": reset_deleted, "emailVerifications": verifications_deleted}
    record_audit(db, "TOKENS_CLEANUP", metadata={"deletedCount": counts, "timestamp": now.isoformat()})
    db.commit()

    logger.info(
        "Cleaned up %d reset tokens and %d email verifications",
        reset_deleted,
        verifications_deleted,
    )
    return counts
