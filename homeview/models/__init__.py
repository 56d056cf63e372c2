# Import all models so they register with Base.metadata
from homeview.models.viewing import (
    DEFAULT_DURATION_MINUTES,
    STATUS_TRANSITIONS,
    Viewing,
    ViewingStatus,
)

__all__ = [
    "DEFAULT_DURATION_MINUTES",
    "STATUS_TRANSITIONS",
    "Viewing",
    "ViewingStatus",
]
