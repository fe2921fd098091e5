"""
mcrw: MIFARE Classic reader/writer HTTP service.

FastAPI backend exposing a PC/SC contactless reader over HTTP:
- Block read/write/clear, with sector trailers behind their own routes
- Sector read/write/clear and per-sector diagnostic dumps
- Value block format, read, increment and decrement
- Card UID and full card report

Run with: uvicorn mcrw.main:app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mcrw.config import LOG_FORMAT, LOG_LEVEL
from mcrw.api import cards

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting mcrw...")
    yield
    logger.info("Shutting down mcrw")


app = FastAPI(
    title="mcrw",
    description="MIFARE Classic Reader/Writer",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(cards.router)
app.include_router(cards.status_router)
