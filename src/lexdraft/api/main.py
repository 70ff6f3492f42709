from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Callable, Optional
import logging

from .. import __version__
from ..config import settings
from ..database import init_db
from ..runtime import Runtime, build_runtime
from ..utils.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(runtime_factory: Optional[Callable[[], Runtime]] = None, *, init_database: bool = True) -> FastAPI:
    """Build the API app; the runtime is created and started in the lifespan."""
    factory = runtime_factory or build_runtime

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(level=settings.LOG_LEVEL)
        logger.info("[backend] LexDraft backend starting...")
        if init_database:
            await init_db()
            logger.info("[backend] Database initialized")

        runtime = factory()
        await runtime.start()
        app.state.runtime = runtime
        yield
        # Shutdown
        logger.info("[backend] LexDraft backend shutting down...")
        await runtime.stop()

    app = FastAPI(
        title="LexDraft API",
        description="Asynchronous demand letter generation",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {"message": f"LexDraft API v{__version__}"}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/health/queues")
    async def queue_health():
        runtime: Runtime = app.state.runtime
        report = await runtime.registry.health_check()
        report["ready"] = runtime.registry.is_ready
        report["worker_running"] = runtime.scheduler.is_running
        return report

    return app


app = create_app()
