from homeview.api.routes.viewings import router as viewings_router
from homeview.api.routes.admin import router as admin_router

__all__ = [
    "viewings_router",
    "admin_router",
]
