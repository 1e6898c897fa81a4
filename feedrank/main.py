"""
Feed Ranking API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Start the quality scoring HTTP client
  4. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from feedrank.config import settings
from feedrank.database import engine, init_db
from feedrank.telemetry import setup_tracing, instrument_app
from feedrank.clients.quality_client import quality_client
from feedrank.routers import feed

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
if settings.tracing_enabled:
    setup_tracing(engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of external connections."""
    logger.info("Starting Feed Ranking API (env=%s)", settings.environment)

    await init_db()
    await quality_client.start()

    logger.info("Quality service at %s. API ready.", settings.quality_service_url)
    yield

    logger.info("Shutting down...")
    await quality_client.stop()
    await engine.dispose()


app = FastAPI(
    title="Feed Ranking API",
    description=(
        "Personalized feed ranking: single-query candidate retrieval, "
        "batched quality scoring and hybrid re-ranking."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(feed.router, prefix="/feed", tags=["Feed"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics — scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
if settings.tracing_enabled:
    instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
