"""
Configuration for the face verification service.
"""
from pydantic import BaseModel
import os

class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    # Camera / display surface
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    DISPLAY_WIDTH: int = int(os.getenv("DISPLAY_WIDTH", "720"))
    DISPLAY_HEIGHT: int = int(os.getenv("DISPLAY_HEIGHT", "560"))
    OVERLAY_INTERVAL: float = float(os.getenv("OVERLAY_INTERVAL", "0.3"))

    # Models (DeepFace)
    MODEL_NAME: str = os.getenv("MODEL_NAME", "Facenet")
    DETECTOR_BACKEND: str = os.getenv("DETECTOR_BACKEND", "opencv")
    LANDMARK_BACKEND: str = os.getenv("LANDMARK_BACKEND", "opencv")
    MODEL_DIR: str | None = os.getenv("DEEPFACE_HOME") or None
    MATCH_THRESHOLD: float = float(os.getenv("MATCH_THRESHOLD", "0.6"))

    # References
    REFERENCE_SOURCE: str = os.getenv("REFERENCE_SOURCE", "remote")
    REFERENCE_API_URL: str = os.getenv("REFERENCE_API_URL", "http://localhost:3000")
    REFERENCE_DIR: str = os.getenv("REFERENCE_DIR", "data/references")
    REFERENCE_CONCURRENCY: int = int(os.getenv("REFERENCE_CONCURRENCY", "4"))

    # Timeouts (seconds) for every externally awaited call
    MODEL_LOAD_TIMEOUT: float = float(os.getenv("MODEL_LOAD_TIMEOUT", "120"))
    CAMERA_TIMEOUT: float = float(os.getenv("CAMERA_TIMEOUT", "10"))
    DETECT_TIMEOUT: float = float(os.getenv("DETECT_TIMEOUT", "15"))
    REFERENCE_TIMEOUT: float = float(os.getenv("REFERENCE_TIMEOUT", "10"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize REFERENCE_SOURCE: lower-case, fall back to remote
        src = (self.REFERENCE_SOURCE or "remote").strip().lower()
        if src not in ("remote", "local"):
            src = "remote"
        object.__setattr__(self, "REFERENCE_SOURCE", src)
        object.__setattr__(self, "REFERENCE_API_URL", self.REFERENCE_API_URL.rstrip("/"))
        object.__setattr__(self, "REFERENCE_CONCURRENCY", max(1, int(self.REFERENCE_CONCURRENCY)))
        object.__setattr__(self, "LOG_LEVEL", (self.LOG_LEVEL or "INFO").strip().upper())
