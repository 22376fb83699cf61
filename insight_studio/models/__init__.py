"""Models layer - SQLAlchemy ORM models.

All models inherit from the Base class defined in core.database.
"""

from insight_studio.core.database import Base
from insight_studio.models.document import Document
from insight_studio.models.project import Project

__all__ = [
    "Base",
    "Document",
    "Project",
]
