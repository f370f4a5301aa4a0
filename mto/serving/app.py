"""
MTO Floor Predictor - FastAPI server.

Games are fused from the ESPN schedule feed and The Odds API on every
request (behind a short feed cache); predictions are cached per
(game, as-of date) for a few minutes. Feed outages degrade the data, never
the HTTP status.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from mto.config import settings
from mto.pipeline.orchestrator import SlateService
from mto.serving.routes.games import router as games_router
from mto.serving.routes.health import router as health_router
from mto.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(service: Optional[SlateService] = None) -> FastAPI:
    """Build the app; an injected service is used as-is and not closed on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # === STARTUP ===
        owned = service is None
        app.state.service = service or SlateService.from_settings(settings)
        logger.info(
            f"MTO predictor {settings.version} started "
            f"(odds feed {'enabled' if settings.odds_feed_active else 'disabled'})"
        )

        yield

        # === SHUTDOWN ===
        if owned:
            await app.state.service.aclose()
        logger.info("MTO predictor shutting down")

    app = FastAPI(
        title="MTO Floor Predictor",
        description="Fused game slates and conservative total-score floors.",
        version=settings.version,
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(games_router)
    return app


app = create_app()
