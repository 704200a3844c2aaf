from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from db import Database
from routes import admin_router, battles_router, data_router, scores_router, stats_router
from services import Services
from stores import Stores

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(db_path: str | None = None) -> FastAPI:
    """Build the API. The database is opened on startup and closed on shutdown."""
    db_path = db_path or config.DB_PATH

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(db_path)
        await database.init()
        app.state.services = Services(Stores(database))
        logger.info(f"[APP] Started with database {db_path}")
        try:
            yield
        finally:
            await database.close()

    # --- FastAPI setup ---
    app = FastAPI(title="Roost", lifespan=lifespan)

    # --- Middleware ---
    if config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.CORS_ORIGINS,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["*"],
            expose_headers=["ETag"],
        )

    @app.get("/api/ping", include_in_schema=False)
    async def ping():
        return {"status": "ok"}

    # --- Register routes ---
    app.include_router(battles_router, prefix="/api/{game_slug}/battles", tags=["battles"])
    app.include_router(data_router, prefix="/api/{game_slug}/data", tags=["data"])
    app.include_router(scores_router, prefix="/api/{game_slug}/scores", tags=["scores"])
    app.include_router(stats_router, prefix="/api/{game_slug}/stats", tags=["stats"])
    app.include_router(admin_router, prefix="/api/admin/{game_slug}", tags=["admin"])
    return app


app = create_app()
