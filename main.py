"""
Chess Arena: game sessions, matchmaking and tournaments over HTTP.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.router import include_routers
from app.core.config import settings
from app.core.exception_handlers import register_exception_handlers
from app.core.startup import initialize_database, shutdown_database

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting Chess Arena API against {settings.DATABASE_URL}")
    initialize_database()
    yield
    logger.info("Shutting down Chess Arena API")
    shutdown_database()


app = FastAPI(
    title="Chess Arena",
    description="""
    Server-authoritative chess: legal-move validation, game clocks with
    increment, a matchmaking queue and Swiss, round-robin and
    single-elimination tournaments.
    """,
    version="1.0.0",
    lifespan=lifespan
)

register_exception_handlers(app)
include_routers(app)


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
