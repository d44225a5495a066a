"""
Newsletter Export API Server

FastAPI application providing endpoints for:
- Health check
- Publication discovery (feed or archive)
- Export jobs (TXT and EPUB)
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from . import __version__
from .config import config, state
from .fetcher import Fetcher
from .routes import exports_router, misc_router, publications_router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize application resources."""
    # Startup - skip if already initialized (e.g., by tests)
    if state.fetcher is None:
        state.fetcher = Fetcher()
        logger.info(f"Fetcher initialized (timeout: {config.FETCH_TIMEOUT}s)")

    yield


app = FastAPI(
    title="Newsletter Export API",
    version=__version__,
    lifespan=lifespan
)

# Include routers
app.include_router(misc_router)
app.include_router(publications_router)
app.include_router(exports_router)


def main():
    uvicorn.run(app, host="127.0.0.1", port=config.PORT)


if __name__ == "__main__":
    main()
