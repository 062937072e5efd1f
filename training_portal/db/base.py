"""SQLAlchemy declarative base and model imports for Alembic."""
from training_portal.db.session import Base

# Import all models so Alembic can see them
from training_portal.models.user import User  # noqa: F401
from training_portal.models.visit import SectionVisit  # noqa: F401

__all__ = ["Base", "User", "SectionVisit"]
