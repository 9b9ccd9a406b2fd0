import sys
import types
import numpy as np
import pytest

from core.config import Settings
from core.models import Box, FaceDetection


def solid(value: int, h: int = 48, w: int = 64) -> np.ndarray:
    """Uniform BGR image; fakes below key their answers on the fill value."""
    return np.full((h, w, 3), value, dtype=np.uint8)


def face_blob(embedding, x=4, y=4, w=20, h=20, conf=0.9):
    return {
        "embedding": list(embedding),
        "facial_area": {"x": x, "y": y, "w": w, "h": h,
                        "left_eye": (x + 5, y + 6), "right_eye": (x + 14, y + 6)},
        "face_confidence": conf,
    }


class FakeDeepFace:
    """Stands in for deepface.DeepFace: image fill value -> list of represent() blobs."""
    def __init__(self):
        self.table = {}
        self.fail_build = set()
        self.built = []
        self.represent_calls = 0

    def build_model(self, model_name, task="facial_recognition"):
        if model_name in self.fail_build:
            raise ValueError(f"no weights for {model_name}")
        self.built.append((task, model_name))
        return object()

    def represent(self, img_path, model_name, detector_backend, enforce_detection, align):
        self.represent_calls += 1
        h, w = img_path.shape[:2]
        blobs = self.table.get(int(img_path[0, 0, 0]))
        if not blobs:
            # what DeepFace returns with enforce_detection=False and no face
            return [{"embedding": [0.1, 0.2], "face_confidence": 0,
                     "facial_area": {"x": 0, "y": 0, "w": w, "h": h, "left_eye": None, "right_eye": None}}]
        return blobs


class FakeEngine:
    """Duck-typed FaceEngine: image fill value -> descriptor (None = no face)."""
    def __init__(self, descriptors=None, fail_load=None):
        self.descriptors = descriptors or {}
        self.fail_load = fail_load
        self.loaded = False
        self.single_calls = 0
        self.all_calls = 0

    async def load_models(self):
        if self.fail_load is not None:
            raise self.fail_load
        self.loaded = True

    def _face(self, image):
        d = self.descriptors.get(int(image[0, 0, 0]))
        if d is None:
            return None
        return FaceDetection(box=Box(x=2, y=2, w=10, h=10), descriptor=list(d), confidence=1.0)

    async def detect_single(self, image):
        self.single_calls += 1
        return self._face(image)

    async def detect_all(self, frame):
        self.all_calls += 1
        f = self._face(frame)
        return [f] if f else []


class FakeCamera:
    def __init__(self, frame=None, opens=True, index=0):
        self.index = index
        self.frame = frame
        self.opens = opens
        self.open_calls = 0
        self.released = False
        self._open = False

    @property
    def is_open(self):
        return self._open

    def open(self):
        self.open_calls += 1
        self._open = self.opens
        return self.opens

    def read(self):
        return None if self.frame is None else self.frame.copy()

    def release(self):
        self.released = True
        self._open = False


class FakeSource:
    def __init__(self, images=None, error=None):
        self.images = images or []
        self.error = error
        self.load_calls = 0
        self.closed = False

    async def load(self):
        self.load_calls += 1
        if self.error is not None:
            raise self.error
        return list(self.images)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_deepface(monkeypatch):
    df = FakeDeepFace()
    monkeypatch.setitem(sys.modules, "deepface", types.SimpleNamespace(DeepFace=df))
    return df


@pytest.fixture
def settings():
    return Settings(OVERLAY_INTERVAL=0.01, CAMERA_TIMEOUT=0.5, DETECT_TIMEOUT=2.0,
                    REFERENCE_TIMEOUT=0.5, MODEL_LOAD_TIMEOUT=2.0,
                    DISPLAY_WIDTH=128, DISPLAY_HEIGHT=96)
