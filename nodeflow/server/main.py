"""
FastAPI server exposing an EditorSession to a rendering front end.

Start with:
    python -m nodeflow.server.main

Or via uvicorn directly:
    uvicorn --factory nodeflow.server.main:create_app --port 3001 --reload
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nodeflow import __version__
from nodeflow.server.routes.graph_routes import router
from nodeflow.server.settings import Settings
from nodeflow.server.state import EditorSession

logger = logging.getLogger(__name__)


def create_app(session: Optional[EditorSession] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    # ---------------------------------------------------------------------------
    # FastAPI application
    # ---------------------------------------------------------------------------

    app = FastAPI(title="nodeflow API", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.session = session or EditorSession.from_settings(settings)
    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "nodes": len(app.state.session.nodes)}

    logger.info("nodeflow API ready (circular behavior: %s)", app.state.session.config.circular_behavior)
    return app


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
