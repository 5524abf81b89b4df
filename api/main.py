import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import models
from api.routes import files
from api.services.storage import LocalFileStore, get_store

LOG = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(asctime)s [%(levelname)s] %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(os.getenv("LOG_LEVEL", "INFO").upper())
    LOG.info("Volume file store API starting")
    yield


app = FastAPI(title="Volume File Store API", version="0.1.0", lifespan=lifespan)

default_origins = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://localhost:8000",
]
cors_origins = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", ",".join(default_origins)).split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, object]:
    return {
        "service": "volume-file-store",
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health", response_model=models.HealthResponse)
async def health(store: LocalFileStore = Depends(get_store)) -> models.HealthResponse:
    healthy = await store.check_storage()
    return models.HealthResponse(
        status="ok" if healthy else "degraded",
        storage=models.StorageStatus(**store.describe()),
    )


app.include_router(files.router, prefix="/files", tags=["files"])


def run() -> None:
    uvicorn.run("api.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    run()
