from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Callable

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from searchrag.config import load_app_config
from searchrag.logger import setup_logging
from searchrag.pipeline import Pipeline
from searchrag.types import GoRequest

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="searchrag", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def _shared_pipeline() -> Pipeline:
    return Pipeline()


def pipeline_factory() -> Callable[[], Pipeline]:
    """Dependency returning a builder; `go` runs it in a worker thread."""

    return _shared_pipeline


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return JSONResponse(status_code=422, content={"error": details or "Invalid request body."})


@app.get("/")
async def index() -> str:
    return load_app_config().get("service_name", "searchrag")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.post("/go")
async def go(
    request: GoRequest,
    build_pipeline: Callable[[], Pipeline] = Depends(pipeline_factory),
):
    try:
        pipeline = await asyncio.to_thread(build_pipeline)
        prepared = await pipeline.prepare(request)
    except Exception as exc:
        logger.exception("Pipeline execution failed.")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return StreamingResponse(
        pipeline.stream(prepared),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache", "X-Content-Type-Options": "nosniff"},
    )
