"""FastAPI server for the parts support assistant.

Run with:
    uvicorn parts_assistant.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from parts_assistant.agent import create_parts_assistant
from parts_assistant.api.routes import router
from parts_assistant.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from parts_assistant.services.catalog import get_catalog

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start-up: load the catalog and build the assistant once."""
    logger.info("Loading catalog and compiling turn graph…")
    get_catalog()
    application.state.assistant = create_parts_assistant()
    logger.info("Assistant ready.")
    yield


app = FastAPI(
    title="PartSelect Parts Assistant",
    description=(
        "Support assistant for refrigerator and dishwasher parts — "
        "compatibility checks, repair diagnosis, installation help and "
        "conversation summaries by email."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID to every request and echo it in ``X-Request-ID``."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "PartSelect Parts Assistant",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


if __name__ == "__main__":
    logger.info("Starting parts assistant API on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "parts_assistant.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
