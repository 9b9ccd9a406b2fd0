
"""Overlay helpers for the live camera view.

- resize_detections: map detection geometry from frame pixels to the display surface
- blank_overlay: a cleared overlay canvas of the display size
- draw_overlays: draw face boxes, landmarks and an optional status line
- compose: resize a frame to the display surface and blend the overlay on top
"""
from __future__ import annotations
import cv2
import numpy as np
from typing import List, Optional, Tuple

from core.models import Box, FaceDetection

BOX_COLOR = (0, 255, 0)
LANDMARK_COLOR = (0, 200, 255)


def resize_detections(faces: List[FaceDetection],
                      frame_size: Tuple[int, int],
                      display_size: Tuple[int, int]) -> List[FaceDetection]:
    """Scale boxes and landmarks from ``frame_size`` (w, h) to ``display_size`` (w, h)."""
    fw, fh = frame_size
    dw, dh = display_size
    if fw <= 0 or fh <= 0:
        return []
    sx, sy = dw / float(fw), dh / float(fh)
    out = []
    for f in faces:
        b = f.box
        out.append(f.model_copy(update={
            "box": Box(x=int(round(b.x * sx)), y=int(round(b.y * sy)),
                       w=int(round(b.w * sx)), h=int(round(b.h * sy))),
            "landmarks": {k: (int(round(x * sx)), int(round(y * sy))) for k, (x, y) in f.landmarks.items()},
        }))
    return out


def blank_overlay(display_size: Tuple[int, int]) -> np.ndarray:
    w, h = display_size
    return np.zeros((h, w, 3), dtype=np.uint8)


def draw_overlays(canvas: np.ndarray,
                  faces: List[FaceDetection] | None = None,
                  status: Optional[str] = None,
                  color: Tuple[int, int, int] = BOX_COLOR) -> np.ndarray:
    """Draw boxes, landmarks and a status line.

    Args:
        canvas: BGR image (overlay canvas or frame)
        faces: detections already in canvas coordinates
        status: optional text drawn in the top-left corner
        color: BGR color for rectangles

    Returns:
        Annotated copy of ``canvas``
    """
    out = canvas.copy()
    h, w = out.shape[:2]

    for face in faces or []:
        b = face.box
        # clamp to image bounds
        x = max(0, min(b.x, w-1)); y = max(0, min(b.y, h-1))
        bw = max(0, min(b.w, w-x)); bh = max(0, min(b.h, h-y))
        cv2.rectangle(out, (x, y), (x+bw, y+bh), color, 2)
        for px, py in face.landmarks.values():
            if 0 <= px < w and 0 <= py < h:
                cv2.circle(out, (px, py), 2, LANDMARK_COLOR, -1)

    if status:
        cv2.putText(out, status, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 0, 255), 2, cv2.LINE_AA)
    return out


def compose(frame: np.ndarray, overlay: np.ndarray) -> np.ndarray:
    """Resize ``frame`` to the overlay size and paint non-empty overlay pixels over it."""
    oh, ow = overlay.shape[:2]
    base = cv2.resize(frame, (ow, oh), interpolation=cv2.INTER_AREA)
    mask = overlay.any(axis=2)
    base[mask] = overlay[mask]
    return base
