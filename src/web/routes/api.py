from __future__ import annotations

import logging

import cv2
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from ..api_models import SessionStatusResponse

router = APIRouter()


def _status(request: Request) -> dict:
    engine = request.app.state.engine
    ctx = request.app.state.ctx

    status = engine.session.snapshot()
    status["fps"] = ctx.stats_snapshot().get("fps", 0.0)
    status["last_frame_age_s"] = ctx.frame_age()
    return status


@router.get("/status", response_model=SessionStatusResponse)
def status(request: Request):
    """
    Current session status: phase, last decision signal, best detection.
    """
    return _status(request)


@router.post("/session/start", response_model=SessionStatusResponse)
def start_session(request: Request):
    """Reset to SCANNING and (re)start capture."""
    request.app.state.engine.reset()
    logging.info("Session start requested via API")
    return _status(request)


@router.post("/session/stop", response_model=SessionStatusResponse)
def stop_session(request: Request):
    """Stop capture before the next cycle. The session phase is kept."""
    request.app.state.engine.stop()
    logging.info("Session stop requested via API")
    return _status(request)


@router.get("/frame.jpg")
def latest_frame(request: Request):
    frame = request.app.state.ctx.get_frame()
    if frame is None:
        raise HTTPException(status_code=404, detail="No frame available")
    ok, encoded = cv2.imencode(".jpg", frame)
    if not ok:
        raise HTTPException(status_code=500, detail="Failed to encode frame")
    return Response(content=encoded.tobytes(), media_type="image/jpeg")
