"""
FastAPI application factory for the document scanner.

Routes:
- /api/status -> session status
- /api/session/start, /api/session/stop -> session control
- /api/frame.jpg -> latest annotated frame
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import api


def create_app(engine, ctx) -> FastAPI:
    """
    Create the FastAPI app bound to a running engine.

    Args:
        engine: PipelineEngine whose session is exposed and controlled.
        ctx: RuntimeContext holding the latest annotated frame.
    """
    app = FastAPI(
        title="Document Scanner",
        version="0.1.0",
        description="Live ID document detection",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = engine
    app.state.ctx = ctx
    app.include_router(api.router, prefix="/api")

    return app
