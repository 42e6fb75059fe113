"""FastAPI application setup with lifespan and exception handlers."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
import logging
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from omnipedia import __version__
from omnipedia.api.routes import router
from omnipedia.orchestrator import PipelineRunner, SessionStore
from omnipedia.pipeline.video_gen import DOWNLOAD_TIMEOUT
from omnipedia.services.file_manager import FileManager
from omnipedia.services.genai_client import ApiCredentials

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Objects shared by every request: one session per server process."""

    session: SessionStore
    credentials: ApiCredentials
    runner: PipelineRunner
    file_manager: FileManager


def build_runtime(
    credentials: Optional[ApiCredentials] = None,
    file_manager: Optional[FileManager] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Runtime:
    """Wire the session store, credentials and pipeline runner together."""
    file_manager = file_manager or FileManager()
    credentials = credentials or ApiCredentials.from_environment()
    session = SessionStore(file_manager=file_manager)
    if not credentials.is_configured:
        session.require_credentials()
    runner = PipelineRunner(session, credentials, file_manager=file_manager, http_client=http_client)
    return Runtime(session=session, credentials=credentials, runner=runner, file_manager=file_manager)


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    """Create the API application.

    Args:
        runtime: Pre-built runtime. If None, one is built at startup with a
                 shared httpx client that is closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        Startup:
            - Build the runtime (credentials, session store, runner)

        Shutdown:
            - Close the shared download client
        """
        logger.info("Starting Omnipedia API...")
        http_client = None
        if runtime is None:
            http_client = httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT)
            app.state.runtime = build_runtime(http_client=http_client)
        else:
            app.state.runtime = runtime
        logger.info("API startup complete")

        yield

        logger.info("Shutting down Omnipedia API...")
        if http_client is not None:
            await http_client.aclose()
        logger.info("API shutdown complete")

    app = FastAPI(
        title="Omnipedia API",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS for Vite dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler to prevent stack traces in API responses."""
        logger.error(f"Unhandled exception in {request.method} {request.url.path}: {type(exc).__name__}: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc),
            }
        )

    return app


app = create_app()
