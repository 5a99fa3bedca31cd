"""FastAPI application entry point"""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from socialink.core.config import settings
from socialink.core.logging import setup_logging
from socialink.core.otel import initialize_tracing, instrument_app
from socialink.db.redis import get_redis_client
from socialink.db.session import engine, init_db
from socialink.models import Base  # noqa: F401  Import all models to register with Base.metadata

# Import routers
from socialink.api import oauth

setup_logging()
logger = logging.getLogger(__name__)

initialize_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared outbound HTTP client and check backing services"""
    init_db()
    try:
        get_redis_client().ping()
    except Exception as e:
        logger.warning(f"Redis is not reachable at startup: {e}")

    app.state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.OAUTH_HTTP_TIMEOUT),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )
    logger.info(f"Started socialink backend ({settings.ENVIRONMENT})")
    try:
        yield
    finally:
        await app.state.http_client.aclose()


app = FastAPI(title="socialink", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(oauth.router)

instrument_app(app, engine)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
