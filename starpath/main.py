import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv


# Settings read the environment on first use, so .env must be loaded first
load_dotenv(Path(__file__).parent.parent / ".env")

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import OperationalError

from .completion.router import router as completion_router
from .config.logging import setup_logging
from .config.settings import Settings, get_settings
from .database.engine import engine
from .database.init import init_database
from .middleware.error_handlers import register_exception_handlers
from .middleware.security import SimpleSecurityMiddleware, limiter
from .progress.router import router as progress_router
from .rewards.router import router as rewards_router
from .stats.router import router as stats_router
from .videos.router import router as videos_router


setup_logging(debug=get_settings().DEBUG)
logger = logging.getLogger(__name__)

ROUTERS: tuple[APIRouter, ...] = (
    completion_router,
    videos_router,
    progress_router,
    rewards_router,
    stats_router,
)

STARTUP_ATTEMPTS = 5


async def _prepare_schema(attempts: int = STARTUP_ATTEMPTS) -> None:
    """Create missing tables, waiting for the database to come up."""
    delay = 1.0
    for attempt in range(1, attempts + 1):
        try:
            await init_database(engine)
        except OperationalError:
            if attempt == attempts:
                logger.exception(f"Database still unreachable after {attempts} attempts")
                raise
            logger.warning(f"Database not ready (attempt {attempt}/{attempts}), retrying in {delay:.0f}s")
            await asyncio.sleep(delay)
            delay *= 2
        else:
            logger.info("Database schema ready")
            return


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    await _prepare_schema()
    yield
    logger.info("Shutting down, disposing database engine")
    await engine.dispose()


def _add_middleware(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SimpleSecurityMiddleware)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the progress API. Tests run without the lifespan and manage tables themselves."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Starpath Progress API",
        description="Curriculum progress, watch tracking and rewards for young learners",
        version="0.1.0",
        debug=settings.DEBUG,
        lifespan=None if settings.ENVIRONMENT == "test" else lifespan,
    )

    _add_middleware(app, settings)
    register_exception_handlers(app)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    for router in ROUTERS:
        app.include_router(router)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
