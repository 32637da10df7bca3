"""Re-export all models so Base.metadata sees them."""

from app.db.models.file import TimelineFile
from app.db.models.timeline import Timeline

__all__ = [
    "Timeline",
    "TimelineFile",
]
