"""
Trust Score — Standalone Service

Start with:
    uvicorn trustscore.main_trust:app --host 0.0.0.0 --port 8000

Host applications that already run FastAPI can instead include
`trustscore.api.trust.router` and put a TrustScoreService and FlagRegistry
on `app.state` themselves.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from trustscore.api.trust import router as trust_router
from trustscore.compute.pipeline import build_service
from trustscore.config import get_settings
from trustscore.trust.flags import FlagRegistry

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("trust_service_starting", environment=settings.ENVIRONMENT)

    service = await build_service(settings)
    if hasattr(service.store, "init_schema"):
        try:
            await service.store.init_schema()
        except Exception as e:
            logger.warning("schema_init_failed", error=str(e))

    app.state.trust_service = service
    app.state.flag_registry = FlagRegistry(service.store, service)

    yield

    await service.close()
    logger.info("trust_service_stopped")


app = FastAPI(
    title="Trust Score",
    description="Trust and reputation scoring for platform identities.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(trust_router)
