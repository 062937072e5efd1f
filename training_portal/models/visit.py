"""SectionVisit model: one row per (user, section); merged on every visit, never replaced."""
from sqlalchemy import Column, Integer, Boolean, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from training_portal.db.session import Base


class SectionVisit(Base):
    __tablename__ = "section_visits"
    __table_args__ = (
        UniqueConstraint("user_id", "section_id", name="uq_section_visits_user_section"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    section_id = Column(String(64), nullable=False)

    first_visit = Column(DateTime(timezone=True), nullable=False)
    last_visit = Column(DateTime(timezone=True), nullable=False)
    cumulative_seconds = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="visits")
