
import numpy as np
from core.models import Box, FaceDetection
from core.visual import blank_overlay, compose, draw_overlays, resize_detections


def test_resize_detections_scales_boxes_and_landmarks():
    f = FaceDetection(box=Box(x=10, y=20, w=30, h=40), landmarks={"nose": (25, 40)})
    [r] = resize_detections([f], (100, 100), (200, 50))
    assert (r.box.x, r.box.y, r.box.w, r.box.h) == (20, 10, 60, 20)
    assert r.landmarks["nose"] == (50, 20)
    # original untouched
    assert f.box.x == 10


def test_resize_detections_empty_frame():
    f = FaceDetection(box=Box(x=1, y=1, w=2, h=2))
    assert resize_detections([f], (0, 0), (100, 100)) == []


def test_draw_overlays_cases():
    canvas = blank_overlay((40, 30))
    assert canvas.shape == (30, 40, 3) and not canvas.any()
    faces = [FaceDetection(box=Box(x=5, y=5, w=15, h=12), landmarks={"left_eye": (10, 9)})]
    out = draw_overlays(canvas, faces)
    assert out.shape == canvas.shape
    assert out.any()
    assert not canvas.any()
    # boxes outside the canvas are clamped, not fatal
    out2 = draw_overlays(canvas, [FaceDetection(box=Box(x=35, y=25, w=50, h=50))], status="hi")
    assert out2.shape == canvas.shape


def test_compose_paints_overlay_over_resized_frame():
    frame = np.full((60, 80, 3), 50, dtype=np.uint8)
    overlay = blank_overlay((40, 30))
    overlay[0, 0] = (0, 255, 0)
    out = compose(frame, overlay)
    assert out.shape == (30, 40, 3)
    assert tuple(out[0, 0]) == (0, 255, 0)
    assert tuple(out[10, 10]) == (50, 50, 50)
