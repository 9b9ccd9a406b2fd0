# core/pipeline.py
from __future__ import annotations
import logging
import os

import cv2

from core.config import Settings
from core.engine import FaceEngine
from core.errors import ReferenceFetchError
from core.matcher import Verifier
from core.models import VerificationOutcome
from core.references import ReferenceLoader, make_reference_source

logger = logging.getLogger(__name__)

async def verify_image(image_path: str, settings: Settings, engine: FaceEngine | None = None,
                       source=None) -> VerificationOutcome:
    """
    Offline verification: the probe image stands in for the live frame.
    Loads models, loads references, then runs the same decision as the webcam flow.
    """
    if not os.path.exists(image_path):
        raise FileNotFoundError(f"Image not found: {image_path}")

    logger.debug(f"[pipeline] verify_image start image_path={image_path}")
    engine = engine or FaceEngine(settings)
    await engine.load_models()

    loader = ReferenceLoader(engine, source or make_reference_source(settings))
    try:
        await loader.load()
    except ReferenceFetchError as e:
        # same recovery as the live session: no references, the decision reports it
        logger.warning(f"[pipeline] reference loading failed: {e}")
        loader.identities = []
    finally:
        await loader.aclose()

    async def _probe():
        return cv2.imread(image_path)

    async def _references():
        return loader.identities

    outcome = await Verifier(engine, _probe, _references, threshold=settings.MATCH_THRESHOLD).verify()
    logger.debug(f"[pipeline] verify_image finished state={outcome.state.value}")
    return outcome
