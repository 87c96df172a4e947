"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from watch_me_run.context import AppContext
from watch_me_run.routers import meets, profile, races, watching

logger = logging.getLogger(__name__)


def create_app(context: AppContext | None = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        ctx = context or AppContext()
        app.state.context = ctx

        started_scheduler = False
        if not ctx.scheduler.running:
            try:
                ctx.scheduler.start()
                started_scheduler = True
                logger.info("Scheduler started")
            except Exception as e:
                logger.warning("Scheduler failed to start: %s", e)
        ctx.start()

        yield

        ctx.stop()
        if started_scheduler:
            ctx.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    app = FastAPI(
        title="Watch Me Run",
        description=(
            "Running meets by lifecycle status, runners' own races, and race "
            "reminders for the runners and featured events you watch."
        ),
        version="1.0.0",
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
        lifespan=lifespan,
    )

    @app.get("/health", include_in_schema=False)
    async def health():
        return {"status": "ok"}

    for r in [meets, races, watching, profile]:
        app.include_router(r.router)

    return app
