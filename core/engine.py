"""
DeepFace-backed inference capability.

Wraps the three model assets the verification flow needs:
- detector:   face boxes for the live overlay (DETECTOR_BACKEND)
- landmarks:  eye/nose/mouth points used to align faces before embedding (LANDMARK_BACKEND)
- descriptor: the embedding network (MODEL_NAME)

DeepFace is imported lazily so tests can monkeypatch sys.modules['deepface'].
All calls are blocking, so they run in worker threads; inference is serialized by a lock
so the overlay loop and a verification never drive the model at the same time.
"""
from __future__ import annotations

import asyncio
import logging
import os
import threading
from typing import List, Optional

import numpy as np

from core.config import Settings
from core.errors import InferenceError, ModelLoadError, ModelsNotLoaded, OperationTimeout
from core.matcher import euclidean_distance
from core.models import Box, FaceDetection
from core.timeouts import with_timeout

logger = logging.getLogger(__name__)

LANDMARK_KEYS = ("left_eye", "right_eye", "nose", "mouth_left", "mouth_right")


def _normalize(embedding) -> List[float]:
    """L2-normalize an embedding so distances live on the unit sphere."""
    if embedding is None:
        return []
    v = np.asarray(embedding, dtype=np.float32).reshape(-1)
    if v.size == 0:
        return []
    n = float(np.linalg.norm(v))
    if n > 0:
        v = v / n
    return [float(x) for x in v]


def _is_placeholder(box: Box, confidence: float, W: int, H: int) -> bool:
    # With enforce_detection=False DeepFace returns the whole frame when it finds nothing
    return confidence <= 0 and box.x <= 0 and box.y <= 0 and box.w >= W - 1 and box.h >= H - 1


def _landmarks(facial_area: dict) -> dict:
    out = {}
    for k in LANDMARK_KEYS:
        pt = facial_area.get(k)
        if pt is None:
            continue
        try:
            out[k] = (int(pt[0]), int(pt[1]))
        except (TypeError, IndexError, ValueError):
            continue
    return out


class FaceEngine:
    """Detection + descriptor capability used by capture, references and matcher."""

    def __init__(self, settings: Settings):
        self.s = settings
        self._loaded = False
        self._lock = asyncio.Lock()
        # held by the worker thread for the whole model call, so a timed-out call
        # still blocks the next one until it actually returns
        self._inference_lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    def assets(self) -> list[tuple[str, str, str]]:
        """(role, deepface task, model name) for every asset that must be loaded."""
        return [
            ("detector", "face_detector", self.s.DETECTOR_BACKEND),
            ("landmarks", "face_detector", self.s.LANDMARK_BACKEND),
            ("descriptor", "facial_recognition", self.s.MODEL_NAME),
        ]

    # ---- loading ----
    async def load_models(self) -> None:
        """
        Load detector, landmark and descriptor assets concurrently.

        Raises:
            ModelLoadError: any asset failed (or timed out); nothing is marked loaded.
        """
        if self._loaded:
            return
        if self.s.MODEL_DIR:
            # DeepFace resolves its weights folder from DEEPFACE_HOME
            os.environ["DEEPFACE_HOME"] = self.s.MODEL_DIR

        try:
            from deepface import DeepFace
        except Exception as e:
            raise ModelLoadError("DeepFace import failed. Ensure deepface/tensorflow stack is installed.") from e

        assets = []
        for role, task, name in self.assets():
            shared = next((r for r, t, n in assets if (t, n) == (task, name)), None)
            if shared is not None:
                # same DeepFace model serves both roles; build it once
                logger.info(f"[engine] {role} asset is the {shared} model '{name}'")
                continue
            assets.append((role, task, name))
        logger.debug(f"[engine] loading assets={assets} dir={self.s.MODEL_DIR}")
        results = await asyncio.gather(
            *[
                with_timeout(
                    asyncio.to_thread(DeepFace.build_model, model_name=name, task=task),
                    self.s.MODEL_LOAD_TIMEOUT,
                    f"load {role} model '{name}'",
                )
                for role, task, name in assets
            ],
            return_exceptions=True,
        )
        failed = [(a, r) for a, r in zip(assets, results) if isinstance(r, BaseException)]
        if failed:
            (role, _task, name), err = failed[0]
            logger.error(f"[engine] model load failed role={role} name={name} err={err}")
            raise ModelLoadError(f"Failed to load {role} model '{name}': {err}") from err
        self._loaded = True
        logger.info("[engine] models loaded")

    # ---- detection ----
    def _represent(self, image: np.ndarray, detector_backend: str) -> list[FaceDetection]:
        from deepface import DeepFace

        H, W = image.shape[:2]
        with self._inference_lock:
            res = DeepFace.represent(
                img_path=image,
                model_name=self.s.MODEL_NAME,
                detector_backend=detector_backend,
                enforce_detection=False,
                align=True,
            )
        res = res if isinstance(res, list) else ([res] if isinstance(res, dict) else [])

        faces: list[FaceDetection] = []
        for r in res:
            fa = (r or {}).get("facial_area") or {}
            box = Box(x=int(fa.get("x", 0)), y=int(fa.get("y", 0)),
                      w=int(fa.get("w", 0)), h=int(fa.get("h", 0)))
            try:
                conf = float(r.get("face_confidence") or 0.0)
            except (TypeError, ValueError):
                conf = 0.0
            if box.w <= 0 or box.h <= 0 or _is_placeholder(box, conf, W, H):
                continue
            faces.append(FaceDetection(
                box=box,
                landmarks=_landmarks(fa),
                descriptor=_normalize(r.get("embedding")),
                confidence=conf,
            ))
        return faces

    async def _run(self, image: np.ndarray, detector_backend: str, what: str) -> list[FaceDetection]:
        if not self._loaded:
            raise ModelsNotLoaded(f"{what} called before load_models()")
        async with self._lock:
            try:
                return await with_timeout(
                    asyncio.to_thread(self._represent, image, detector_backend),
                    self.s.DETECT_TIMEOUT,
                    what,
                )
            except OperationTimeout:
                raise
            except Exception as e:
                logger.exception(f"[engine] {what} failed")
                raise InferenceError(f"{what} failed: {e}") from e

    async def detect_all(self, frame: np.ndarray) -> list[FaceDetection]:
        """All faces in ``frame`` with boxes, landmarks and descriptors."""
        faces = await self._run(frame, self.s.DETECTOR_BACKEND, "detect_all")
        logger.debug(f"[engine] detect_all faces={len(faces)}")
        return faces

    async def detect_single(self, image: np.ndarray) -> Optional[FaceDetection]:
        """The most confident (then largest) face with a descriptor, or None."""
        faces = [f for f in await self._run(image, self.s.LANDMARK_BACKEND, "detect_single") if f.descriptor]
        if not faces:
            return None
        return max(faces, key=lambda f: (f.confidence, f.box.w * f.box.h))

    @staticmethod
    def distance(a, b) -> float:
        return euclidean_distance(a, b)
