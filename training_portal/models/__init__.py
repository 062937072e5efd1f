from training_portal.models.user import User
from training_portal.models.visit import SectionVisit

__all__ = ["User", "SectionVisit"]
