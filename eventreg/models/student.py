from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from eventreg.database import Base


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_students_user_id"),
        UniqueConstraint("registration_number", name="uq_students_registration_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(100), nullable=False)
    registration_number = Column(String(32), nullable=False, index=True)
    course = Column(String(100), nullable=False)
    faculty = Column(String(100), nullable=False)
    enrollment_year = Column(Integer, nullable=False)
    graduated = Column(Boolean, nullable=False, default=False)

    profile_photo = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="student")
    skills = relationship(
        "StudentSkill",
        back_populates="student",
        cascade="all, delete-orphan",
        order_by="StudentSkill.name",
    )
