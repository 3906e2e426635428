"""FastAPI application entrypoint for the certification voucher service."""

import logging

from fastapi import FastAPI

from .api.v1.router import api_router
from .core.config import get_settings
from .core.database import create_all
from .jobs import register_scheduler


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Certification Voucher API", version="0.1.0")
    app.include_router(api_router, prefix="/api/v1")

    @app.on_event("startup")
    def create_tables() -> None:
        create_all()

    register_scheduler(app)
    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn using the configured address."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "certvoucher.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
