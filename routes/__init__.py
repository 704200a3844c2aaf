"""HTTP route modules (FastAPI routers) for the application.

This file explicitly exports the router objects provided by each
submodule so callers can do:

	from routes import battles_router
	app.include_router(battles_router, prefix="/api/{game_slug}/battles")

Submodules should expose an `APIRouter` named `router`.
"""

from .battles import router as battles_router
from .data import router as data_router
from .scores import router as scores_router
from .stats import router as stats_router
from .admin import router as admin_router

__all__ = [
	"battles_router",
	"data_router",
	"scores_router",
	"stats_router",
	"admin_router",
]
