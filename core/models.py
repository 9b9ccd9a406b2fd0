"""
Pydantic data models shared by the core and the API.
"""
from __future__ import annotations
from enum import Enum
import time
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Tuple

class IdentityRecord(BaseModel):
    """One entry of the backend's ``GET /images`` listing."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    name: str

class Box(BaseModel):
    x: int
    y: int
    w: int
    h: int

class FaceDetection(BaseModel):
    box: Box
    landmarks: Dict[str, Tuple[int, int]] = Field(default_factory=dict)
    descriptor: List[float] = Field(default_factory=list)
    confidence: float = 0.0

class ReferenceImage(BaseModel):
    """A decoded reference image tagged with its label (image is a BGR ndarray)."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    label: str
    image: Any

class ReferenceIdentity(BaseModel):
    label: str
    descriptor: Optional[List[float]] = None

    @property
    def usable(self) -> bool:
        return bool(self.descriptor)

class MatchResult(BaseModel):
    label: str
    distance: float = Field(ge=0.0)


# verification / status


class AuthState(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    VERIFYING = "verifying"
    MATCHED = "matched"
    DENIED = "denied"
    NO_FACE = "no_face"
    NO_REFERENCES = "no_references"
    FAILED = "failed"

class VerificationOutcome(BaseModel):
    matched: bool
    label: Optional[str] = None
    distance: Optional[float] = None
    state: AuthState
    message: str

class AuthStatus(BaseModel):
    state: AuthState
    message: str
    label: Optional[str] = None
    reason: Optional[str] = None
    ts: float = Field(default_factory=time.time)

class ReferenceSummary(BaseModel):
    label: str
    has_descriptor: bool

class LiveStatus(BaseModel):
    running: bool
    started_at: float | None = None
    last_tick: float | None = None
    faces: int = 0
    skipped_ticks: int = 0
