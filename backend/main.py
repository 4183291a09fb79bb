"""
FastAPI Backend

Main API server for the companion chat application.
Uses Groq as the only LLM provider.
"""

# Load .env first, before any module reads environment variables.
from pathlib import Path
from dotenv import load_dotenv

_project_root = Path(__file__).resolve().parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(dotenv_path=_env_file)
else:
    load_dotenv()  # fallback: current directory

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from backend.app.api.chat import router as chat_router
from backend.app.api.companions import router as companions_router
from backend.app.api.platform import router as platform_router
from backend.app.core.config import get_settings
from backend.app.core.errors import CompanionError
from backend.app.core.resources import AppResources
from backend.app.observability.logging import log_event, setup_logging


def create_app(resources: Optional[AppResources] = None) -> FastAPI:
    settings = resources.settings if resources is not None else get_settings()
    setup_logging(settings.log_level, debug=settings.debug)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = resources is None
        app.state.resources = AppResources.build(settings) if owned else resources
        await run_in_threadpool(app.state.resources.companions.seed_categories)
        log_event("app_started", app_name=settings.app_name, app_env=settings.app_env)
        try:
            yield
        finally:
            if owned:
                await app.state.resources.close()

    app = FastAPI(title=f"{settings.app_name} Chat", lifespan=lifespan)
    if resources is not None:
        # Available even when the lifespan is not entered.
        app.state.resources = resources

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router)
    app.include_router(companions_router)
    app.include_router(platform_router)

    @app.exception_handler(CompanionError)
    async def companion_error_handler(request: Request, exc: CompanionError):
        return PlainTextResponse(exc.detail, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        log_event(
            "unhandled_exception",
            logging.ERROR,
            path=request.url.path,
            error_class=type(exc).__name__,
            error=str(exc),
        )
        return PlainTextResponse("Internal Error", status_code=500)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "app_name": settings.app_name,
            "api_key_loaded": bool(settings.groq_api_key),
            "model": settings.groq_model,
            "vector_db": f"qdrant:{settings.qdrant_collection}",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
