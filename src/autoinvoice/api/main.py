"""FastAPI application factory: sessions, CORS and routers."""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.middleware.sessions import SessionMiddleware

from ..config import Config
from .routers import auth, invoices

logger = logging.getLogger(__name__)

SESSION_MAX_AGE_SECONDS = 24 * 60 * 60


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Build the API application.

    Run with: uvicorn --factory autoinvoice.api.main:create_app
    """
    logging.basicConfig(level=logging.INFO)
    config = config or Config.from_env()

    app = FastAPI(title="Autoinvoice")
    app.state.config = config

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    # Cross-site cookies need SameSite=None, which browsers only accept over HTTPS
    secure = config.frontend_url.startswith("https://")
    app.add_middleware(
        SessionMiddleware,
        secret_key=config.session_secret,
        max_age=SESSION_MAX_AGE_SECONDS,
        same_site="none" if secure else "lax",
        https_only=secure,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "Autoinvoice backend is running!"

    app.include_router(auth.router)
    app.include_router(invoices.router)

    logger.info(f"API configured for frontend {config.frontend_url}")
    return app
