"""Append-only audit trail."""

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventreg.models.audit_log import AuditLog

logger = logging.getLogger("eventreg.audit")


def record_audit(
    db: Session,
    action: str,
    user_id: Optional[Any] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> AuditLog:
    """Add an audit row to the caller's transaction. The caller commits."""
    entry = AuditLog(
        action=action,
        user_id=str(user_id) if user_id is not None else None,
        ip_address=ip_address,
        user_agent=user_agent,
        meta_data=metadata,
    )
    db.add(entry)
    return entry


def log_audit_event(
    db: Session,
    action: str,
    user_id: Optional[Any] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> None:
    """Write and commit an audit row on its own; a failure is logged, not raised."""
    try:
        record_audit(db, action, user_id, ip_address, user_agent, metadata)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to write audit log entry %s", action)
