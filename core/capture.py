# core/capture.py
"""
Live capture: camera access, on-demand frame sampling and the overlay loop.

The overlay loop is a cancellable periodic task:
- fires every OVERLAY_INTERVAL seconds (0.3s by default)
- each tick detects all faces, maps them to the display surface, clears the
  overlay canvas and redraws boxes + landmarks
- a tick is skipped while the previous detection is still running (back-pressure)
- stop() cancels the loop and any in-flight tick deterministically
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Optional

import cv2
import numpy as np

from core.config import Settings
from core.errors import CameraAccessDenied, OperationTimeout
from core.models import FaceDetection, LiveStatus
from core.timeouts import with_timeout
from core.visual import blank_overlay, compose, draw_overlays, resize_detections

logger = logging.getLogger(__name__)

FIRST_FRAME_POLL = 0.05


class Camera:
    """Thread-safe wrapper around cv2.VideoCapture."""
    def __init__(self, index: int = 0):
        self.index = index
        self._cap = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def open(self) -> bool:
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            return False
        with self._lock:
            self._cap = cap
        return True

    def read(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._cap is None:
                return None
            ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        return frame

    def release(self) -> None:
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None


class OverlayFrame:
    """Result of one overlay tick (faces already in display coordinates)."""
    def __init__(self, ts: float, frame: np.ndarray, faces: list[FaceDetection], overlay: np.ndarray):
        self.ts = ts
        self.frame = frame
        self.faces = faces
        self.overlay = overlay

    def render(self) -> np.ndarray:
        return compose(self.frame, self.overlay)


class OverlayLoop:
    """Handle for the periodic detection overlay."""
    def __init__(self, engine, camera: Camera, settings: Settings):
        self.engine = engine
        self.camera = camera
        self.s = settings
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self.started_at: Optional[float] = None
        self.skipped_ticks = 0
        self.latest: Optional[OverlayFrame] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def display_size(self) -> tuple[int, int]:
        return (self.s.DISPLAY_WIDTH, self.s.DISPLAY_HEIGHT)

    # ---- lifecycle ----
    def start(self) -> None:
        if self.running:
            return
        self.started_at = time.time()
        self.skipped_ticks = 0
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"[capture] overlay loop started interval={self.s.OVERLAY_INTERVAL}s")

    async def stop(self) -> None:
        tasks = [t for t in (self._task, self._inflight) if t is not None and not t.done()]
        for t in tasks:
            t.cancel()
        for t in tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
        self._task = None
        self._inflight = None
        logger.debug("[capture] overlay loop stopped")

    def status(self) -> LiveStatus:
        latest = self.latest
        return LiveStatus(
            running=self.running,
            started_at=self.started_at,
            last_tick=latest.ts if latest else None,
            faces=len(latest.faces) if latest else 0,
            skipped_ticks=self.skipped_ticks,
        )

    # ---- loop ----
    async def _run(self) -> None:
        interval = max(0.01, float(self.s.OVERLAY_INTERVAL))
        while True:
            if self._inflight is not None and not self._inflight.done():
                self.skipped_ticks += 1
            else:
                self._inflight = asyncio.get_running_loop().create_task(self.tick())
            await asyncio.sleep(interval)

    async def tick(self) -> Optional[OverlayFrame]:
        """One detection + redraw pass. Failures are logged and never stop the loop."""
        try:
            frame = await asyncio.to_thread(self.camera.read)
            if frame is None:
                return None
            faces = await self.engine.detect_all(frame)
            h, w = frame.shape[:2]
            resized = resize_detections(faces, (w, h), self.display_size)
            overlay = draw_overlays(blank_overlay(self.display_size), resized)
            self.latest = OverlayFrame(time.time(), frame, resized, overlay)
            return self.latest
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[capture] overlay tick failed")
            return None


class CaptureController:
    """Opens the camera, waits for the first frame, then drives the overlay loop."""
    def __init__(self, engine, settings: Settings, camera: Optional[Camera] = None):
        self.s = settings
        self.camera = camera or Camera(settings.CAMERA_INDEX)
        self.overlay = OverlayLoop(engine, self.camera, settings)

    async def start(self) -> None:
        """
        Raises:
            CameraAccessDenied: camera could not be opened.
            OperationTimeout: camera opened but no frame arrived in time.
        """
        try:
            opened = await with_timeout(asyncio.to_thread(self.camera.open),
                                        self.s.CAMERA_TIMEOUT, "camera open")
        except OperationTimeout as e:
            raise CameraAccessDenied(f"Camera {self.camera.index} did not respond") from e
        if not opened:
            raise CameraAccessDenied(f"Could not open camera index {self.camera.index}")
        logger.info(f"[capture] camera {self.camera.index} opened")

        try:
            await with_timeout(self._first_frame(), self.s.CAMERA_TIMEOUT, "first camera frame")
        except OperationTimeout:
            self.camera.release()
            raise
        self.overlay.start()

    async def _first_frame(self) -> np.ndarray:
        while True:
            frame = await asyncio.to_thread(self.camera.read)
            if frame is not None:
                return frame
            await asyncio.sleep(FIRST_FRAME_POLL)

    async def sample(self) -> Optional[np.ndarray]:
        """The current live frame, or None when the camera yields nothing."""
        frame = await with_timeout(asyncio.to_thread(self.camera.read), self.s.CAMERA_TIMEOUT, "frame read")
        if frame is None and self.overlay.latest is not None:
            return self.overlay.latest.frame
        return frame

    async def stop(self) -> None:
        await self.overlay.stop()
        self.camera.release()
        logger.info("[capture] camera released")
