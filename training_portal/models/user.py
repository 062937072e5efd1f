"""User model: identity, position and the one-way acknowledgement flag."""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from training_portal.db.session import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False, default="")
    position = Column(String(32), nullable=False)  # Bartender | Trainee | Admin | Manager | Owner
    status = Column(String(16), nullable=False, default="active")  # active | blocked

    # set once by the acknowledgement gate, never cleared
    acknowledged = Column(Boolean, nullable=False, default=False)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)

    last_active = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)

    visits = relationship("SectionVisit", back_populates="user", order_by="SectionVisit.id")
