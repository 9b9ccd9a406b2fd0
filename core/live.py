# core/live.py
"""
Live camera window.

Shows the webcam with the detection overlay and the current status line:
- 'v' runs a verification against the loaded references
- 'q' quits
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import cv2

from core.config import Settings
from core.errors import FaceAuthError
from core.session import FaceAuthSession
from core.visual import draw_overlays

logger = logging.getLogger(__name__)

WINDOW_TITLE = "Face Verification (v to verify, q to quit)"
REFRESH_SEC = 0.03


async def run_live_overlay(settings: Settings, session: Optional[FaceAuthSession] = None) -> str:
    """
    Open the camera window and keep it refreshed until 'q' (or a terminal failure).

    Returns:
        The last status message.
    """
    session = session or FaceAuthSession(settings)
    await session.start()
    if not session.ready:
        logger.error(f"[live] startup failed: {session.status.current.message}")
        await session.stop()
        return session.status.current.message

    pending: Optional[asyncio.Task] = None
    try:
        while True:
            latest = session.capture.overlay.latest
            if latest is not None:
                view = draw_overlays(latest.render(), [], session.status.current.message)
                cv2.imshow(WINDOW_TITLE, view)

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("v") and (pending is None or pending.done()):
                pending = asyncio.get_running_loop().create_task(session.verify())
            if pending is not None and pending.done() and not pending.cancelled():
                # the session already logged it and put the session back to READY
                err = pending.exception()
                if err is not None and not isinstance(err, FaceAuthError):
                    logger.warning(f"[live] verification crashed: {err!r}")
                pending = None

            await asyncio.sleep(REFRESH_SEC)
    finally:
        if pending is not None and not pending.done():
            pending.cancel()
            try:
                await pending
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"[live] pending verification failed on exit: {e!r}")
        await session.stop()
        cv2.destroyAllWindows()
    return session.status.current.message
