from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from eventreg.database import Base
from eventreg.utils.timeutils import utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    action = Column(String(64), nullable=False, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    meta_data = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
