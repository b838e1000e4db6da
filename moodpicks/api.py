# moodpicks/api.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

import httpx
from fastapi import FastAPI, Request, Response

from moodpicks.config import Settings, configure_logging
from moodpicks.pipeline import MoodPipeline, build_pipeline
from moodpicks.routes.mood_routes import router as mood_router

log = logging.getLogger(__name__)


def cors_headers(origin: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Methods": "GET, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }


def create_app(settings: Optional[Settings] = None, pipeline: Optional[MoodPipeline] = None) -> FastAPI:
    """
    Build the API. With no injected pipeline, the lifespan opens one shared
    httpx client and wires the real providers from `settings`.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.pipeline is not None:
            yield
            return
        async with httpx.AsyncClient(timeout=settings.provider_timeout) as http:
            app.state.pipeline = build_pipeline(settings, http)
            log.info("moodpicks ready (llm=%s, spotify=%s)", settings.has_llm, settings.has_spotify)
            yield
            app.state.pipeline = None

    app = FastAPI(
        title="moodpicks",
        version="1.0.0",
        description="Mood-based movie, TV and book picks with a matching playlist.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    headers = cors_headers(settings.cors_origin)

    # Every response carries the CORS headers; preflight is an empty 200.
    @app.middleware("http")
    async def cors(request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)
        response.headers.update(headers)
        return response

    app.include_router(mood_router)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


def main() -> None:
    import uvicorn

    uvicorn.run("moodpicks.api:create_app", factory=True, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
