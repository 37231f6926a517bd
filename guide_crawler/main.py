"""FastAPI application initialization."""

import os
from contextlib import asynccontextmanager

import logfire
import sentry_sdk
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from guide_crawler import __version__
from guide_crawler.api import cache_listing, crawl, health, scheduling, search
from guide_crawler.config import get_settings
from guide_crawler.logging_config import setup_logfire
from guide_crawler.middleware.correlation_id import CorrelationIDMiddleware
from guide_crawler.services.scheduler import get_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: observability, optional scheduler autostart."""
    settings = get_settings()

    setup_logfire(app)

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            integrations=[FastApiIntegration()],
        )

    if settings.scheduler_autostart:
        get_scheduler().start()

    logfire.info(
        "Application startup complete",
        environment=settings.env,
        scheduler_autostart=settings.scheduler_autostart,
    )

    yield

    get_scheduler().stop()
    logfire.info("Application shutdown complete")


app = FastAPI(
    title="Guide Crawler",
    description="Multi-tenant website crawling, caching and site search",
    version=__version__,
    lifespan=lifespan,
)

# Correlation ID middleware (must be first for request tracing)
app.add_middleware(CorrelationIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


app.include_router(health.router, tags=["health"])
app.include_router(crawl.router, tags=["crawl"])
app.include_router(search.router, tags=["search"])
app.include_router(scheduling.router, tags=["scheduler"])
app.include_router(cache_listing.router, tags=["cache"])


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Guide Crawler API", "version": __version__}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "guide_crawler.main:app", host="0.0.0.0", port=port, reload=os.getenv("ENV") == "local"
    )
