"""
Exception hierarchy for the verification flow.

Components raise these; the session collapses them into status text.
"""
from __future__ import annotations


class FaceAuthError(Exception):
    """Base class for all face-auth failures."""


class ModelLoadError(FaceAuthError):
    """One of the model assets could not be loaded."""


class ModelsNotLoaded(FaceAuthError):
    """A detection call was made before load_models() completed."""


class CameraAccessDenied(FaceAuthError):
    """The camera could not be opened or never produced a frame."""


class ReferenceFetchError(FaceAuthError):
    """The reference listing could not be fetched."""


class OperationTimeout(FaceAuthError):
    """An external call did not complete within its time budget."""

    def __init__(self, what: str, seconds: float):
        super().__init__(f"{what} timed out after {seconds:.1f}s")
        self.what = what
        self.seconds = seconds


class SessionNotReady(FaceAuthError):
    """Verification requested before startup finished, or after a terminal failure."""


class InferenceError(FaceAuthError):
    """The model raised while detecting or describing a face."""
