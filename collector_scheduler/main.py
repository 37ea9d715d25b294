"""FastAPI application entry point."""
import logging

from fastapi import FastAPI

from collector_scheduler.api import health, monitoring, repos
from collector_scheduler.config import settings
from collector_scheduler.core.logging import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Source Code Collector Scheduler API",
    description="Operations API for the collection scheduler",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(monitoring.router, prefix="/api")
app.include_router(repos.router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Source Code Collector Scheduler API",
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("collector_scheduler.main:app", host="0.0.0.0", port=8000, reload=True)
