"""
FastAPI application entrypoint for the Memberful sign-in service.
"""

from __future__ import annotations

from fastapi import FastAPI

from member_oauth.api.routes import router
from member_oauth.core.config import get_settings
from member_oauth.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Memberful OAuth Sign-in",
        version="0.1.0",
        description=(
            "Server-side OAuth2 authorization code flow against Memberful, "
            "with member profile lookup and token refresh."
        ),
    )
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    """Serve the application on the port taken from the ``PORT`` variable."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("member_oauth.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":  # pragma: no cover - script entry point
    run()


__all__ = ["app", "create_app", "run"]
