"""Training portal progress service - FastAPI app entry point."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from training_portal.core.config import Settings, get_settings
from training_portal.core.log import configure_logging
from training_portal.db.base import Base
from training_portal.db.session import build_engine, build_session_factory
from training_portal.routers import api
from training_portal.services.seeding import seed_demo_users
from training_portal.services.tracker import TrainingTracker


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(settings.database_url, echo=settings.debug)
        # create tables (async); alembic owns real migrations
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        tracker = TrainingTracker(build_session_factory(engine), settings)
        app.state.tracker = tracker

        if settings.seed_demo_data:
            await seed_demo_users(tracker.store)

        yield
        await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Training progress tracking, acknowledgement and admin rollup",
        lifespan=lifespan,
    )
    app.include_router(api.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
