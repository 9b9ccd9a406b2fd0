"""
REST + WebSocket endpoints for face verification.
"""
from typing import Optional
import asyncio
import logging

import cv2
from fastapi import APIRouter, HTTPException, Response
from fastapi import WebSocket, WebSocketDisconnect

from core.config import Settings
from core.errors import FaceAuthError, OperationTimeout, SessionNotReady
from core.models import AuthStatus, LiveStatus, VerificationOutcome
from core.session import FaceAuthSession


router = APIRouter()
settings = Settings()
session: Optional[FaceAuthSession] = None
logger = logging.getLogger(__name__)


def get_session() -> FaceAuthSession:
    if session is None:
        raise HTTPException(status_code=503, detail="Session not started")
    return session


@router.get("/status", response_model=AuthStatus)
async def status():
    """
    Current verification status (phase + human-readable message).
    """
    return get_session().status.current


@router.post("/verify", response_model=VerificationOutcome)
async def verify():
    """
    Compare the current webcam face against the loaded references.

    Returns:
        VerificationOutcome: matched flag, label on match and the status message.
    """
    s = get_session()
    logger.debug("[api] /verify")
    try:
        return await s.verify()
    except SessionNotReady as e:
        raise HTTPException(status_code=409, detail=str(e))
    except OperationTimeout as e:
        logger.exception("[api] verify timed out")
        raise HTTPException(status_code=504, detail=str(e))
    except FaceAuthError as e:
        logger.exception("[api] verify failed")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.exception("[api] verify crashed")
        raise HTTPException(status_code=500, detail=f"Verification failed: {e}")


@router.get("/references")
async def references():
    return [r.model_dump() for r in get_session().reference_summary()]


@router.post("/references/reload")
async def references_reload():
    s = get_session()
    if not s.ready:
        raise HTTPException(status_code=409, detail=s.status.current.message)
    identities = await s.reload_references()
    return {"loaded": len(identities), "usable": sum(1 for i in identities if i.usable)}


@router.post("/live/start")
async def live_start():
    s = get_session()
    if not s.ready:
        raise HTTPException(status_code=409, detail=s.status.current.message)
    overlay = s.capture.overlay
    if overlay.running:
        return {"status": "already_running"}
    overlay.start()
    return {"status": "started"}

@router.get("/live/status", response_model=LiveStatus)
async def live_status():
    return get_session().capture.overlay.status()

@router.post("/live/stop")
async def live_stop():
    overlay = get_session().capture.overlay
    if not overlay.running:
        return {"status": "not_running"}
    await overlay.stop()
    return {"status": "stopped"}

@router.get("/live/overlay.jpg")
async def live_overlay():
    latest = get_session().capture.overlay.latest
    if latest is None:
        raise HTTPException(status_code=404, detail="No overlay frame yet")
    ok, buf = cv2.imencode(".jpg", latest.render())
    if not ok:
        raise HTTPException(status_code=500, detail="JPEG encoding failed")
    return Response(content=buf.tobytes(), media_type="image/jpeg")


@router.websocket("/ws/status")
async def ws_status(websocket: WebSocket):
    """
    Push every status update to the client; the first message is the current status.
    Incoming messages are ignored (read only to notice disconnects).
    """
    s = get_session()
    await websocket.accept()
    q = s.status.subscribe()

    async def _pump():
        while True:
            update = await q.get()
            await websocket.send_json(update.model_dump(mode="json"))

    pump = asyncio.create_task(_pump())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("[api] status websocket disconnected")
    finally:
        pump.cancel()
        s.status.unsubscribe(q)
