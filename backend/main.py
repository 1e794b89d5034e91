import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gameauth.api.v1.api import api_router
from gameauth.core.clock import system_clock
from gameauth.core.config import settings
from gameauth.core.errors import register_exception_handlers
from gameauth.core.logging import configure_logging
from gameauth.core.seed import ensure_seed_data
from gameauth.db.session import SessionLocal

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def seed_dev_data():
    db = SessionLocal()
    try:
        ensure_seed_data(db, system_clock)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (env=%s)", settings.PROJECT_NAME, settings.ENV)
    seed_dev_data()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/healthz")
def healthz():
    return {"status": "ok"}
