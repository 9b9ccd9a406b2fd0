# core/session.py
from __future__ import annotations
from typing import List, Optional
import asyncio
import logging

from core.capture import CaptureController
from core.config import Settings
from core.engine import FaceEngine
from core.errors import CameraAccessDenied, FaceAuthError, SessionNotReady
from core.matcher import Verifier
from core.models import AuthState, AuthStatus, ReferenceIdentity, ReferenceSummary, VerificationOutcome
from core.references import ReferenceLoader, make_reference_source
from core import state

logger = logging.getLogger(__name__)


class FaceAuthSession:
    """
    Wires model loading, capture, references and verification together.

    Startup order is fixed: models -> camera (+ overlay loop) -> references.
    A model or camera failure is terminal and nothing downstream is attempted.
    """
    def __init__(self,
                 settings: Settings,
                 engine: Optional[FaceEngine] = None,
                 capture: Optional[CaptureController] = None,
                 source=None,
                 channel: Optional[state.StatusChannel] = None):
        self.s = settings
        self.engine = engine or FaceEngine(settings)
        self.capture = capture or CaptureController(self.engine, settings)
        self.references = ReferenceLoader(self.engine, source or make_reference_source(settings))
        self.status = channel or state.StatusChannel()
        self.verifier = Verifier(self.engine, self.capture.sample, self.usable_references,
                                 threshold=settings.MATCH_THRESHOLD)
        self._ref_task: Optional[asyncio.Task] = None
        self._verify_lock = asyncio.Lock()
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready and not self.status.terminal

    async def start(self) -> AuthStatus:
        logger.debug("[session] start")
        self.status.publish(state.initializing())

        try:
            await self.engine.load_models()
        except FaceAuthError as e:
            logger.exception("[session] model loading failed")
            self.status.publish(state.failed(str(e)))
            return self.status.current

        try:
            await self.capture.start()
        except CameraAccessDenied as e:
            logger.error(f"[session] webcam error: {e}")
            self.status.publish(state.failed(str(e), state.CAMERA_DENIED_MESSAGE))
            return self.status.current
        except FaceAuthError as e:
            logger.exception("[session] webcam startup failed")
            self.status.publish(state.failed(str(e)))
            return self.status.current

        self._ref_task = asyncio.get_running_loop().create_task(self._load_references())
        self._ready = True
        self.status.publish(state.ready())
        return self.status.current

    # ---- references ----
    async def _load_references(self) -> List[ReferenceIdentity]:
        try:
            return await self.references.load()
        except FaceAuthError as e:
            logger.warning(f"[session] reference loading failed: {e}")
            self.references.identities = []
            return []

    async def usable_references(self) -> List[ReferenceIdentity]:
        if self._ref_task is not None:
            await self._ref_task
        return list(self.references.identities)

    async def reload_references(self) -> List[ReferenceIdentity]:
        if self._ref_task is not None and not self._ref_task.done():
            await self._ref_task
        self._ref_task = asyncio.get_running_loop().create_task(self._load_references())
        return await self._ref_task

    def reference_summary(self) -> List[ReferenceSummary]:
        return [ReferenceSummary(label=r.label, has_descriptor=r.usable) for r in self.references.identities]

    # ---- verification ----
    async def verify(self) -> VerificationOutcome:
        """
        Run one verification and publish its outcome.

        Raises:
            SessionNotReady: startup has not completed or has failed.
            FaceAuthError: an external call failed mid-verification.
            Any other exception is re-raised as well; in every failure case the status
            returns to READY.
        """
        if not self.ready:
            raise SessionNotReady(self.status.current.message)

        async with self._verify_lock:
            self.status.publish(state.verifying())
            try:
                outcome = await self.verifier.verify()
            except Exception as e:
                # any failure hands the session back to READY so the next attempt can run
                logger.exception("[session] verification failed")
                self.status.publish(AuthStatus(state=AuthState.READY,
                                               message=f"Verification failed: {e}", reason=str(e)))
                raise
            self.status.publish(state.from_outcome(outcome))
            return outcome

    async def stop(self) -> None:
        if self._ref_task is not None and not self._ref_task.done():
            self._ref_task.cancel()
            try:
                await self._ref_task
            except asyncio.CancelledError:
                pass
        self._ready = False
        await self.capture.stop()
        await self.references.aclose()
        logger.debug("[session] stopped")
