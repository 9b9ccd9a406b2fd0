"""
Match decision: nearest reference descriptor with a fixed rejection threshold.

The live descriptor is the query; the references are the corpus. The corpus is a
handful of identities, so a linear scan is all that is needed.
"""
from __future__ import annotations
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

import numpy as np

from core.models import AuthState, MatchResult, ReferenceIdentity, VerificationOutcome

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6

NO_FACE_MESSAGE = "No face detected in webcam"
NO_REFERENCES_MESSAGE = "No valid reference faces found"
DENIED_MESSAGE = "Face Not Matched: Access Denied"


def matched_message(label: str) -> str:
    return f"Face Matched: {label}"


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.shape != vb.shape:
        raise ValueError(f"descriptor length mismatch: {va.shape[0]} != {vb.shape[0]}")
    return float(np.linalg.norm(va - vb))


def compute_matches(live: Sequence[float], references: Iterable[ReferenceIdentity]) -> List[MatchResult]:
    """One MatchResult per reference that has a usable descriptor, in reference order."""
    matches: List[MatchResult] = []
    for ref in references:
        if ref.descriptor is None or len(ref.descriptor) == 0:
            logger.warning(f"[matcher] no face descriptor for reference '{ref.label}'; skipping")
            continue
        try:
            d = euclidean_distance(ref.descriptor, live)
        except ValueError as e:
            logger.warning(f"[matcher] reference '{ref.label}' unusable: {e}")
            continue
        logger.debug(f"[matcher] {ref.label}: distance={d:.4f}")
        matches.append(MatchResult(label=ref.label, distance=d))
    return matches


def best_match(matches: Sequence[MatchResult]) -> Optional[MatchResult]:
    """Strict minimum; on an exact tie the first one seen wins."""
    best: Optional[MatchResult] = None
    for m in matches:
        if best is None or m.distance < best.distance:
            best = m
    return best


def decide(live: Optional[Sequence[float]],
           references: Iterable[ReferenceIdentity],
           threshold: float = DEFAULT_THRESHOLD) -> VerificationOutcome:
    """
    Classify a live descriptor against the reference corpus.

    Matched iff at least one usable reference exists and the minimum distance is
    strictly below ``threshold``.
    """
    if live is None or len(live) == 0:
        return VerificationOutcome(matched=False, state=AuthState.NO_FACE, message=NO_FACE_MESSAGE)

    matches = compute_matches(live, references)
    if not matches:
        return VerificationOutcome(matched=False, state=AuthState.NO_REFERENCES, message=NO_REFERENCES_MESSAGE)

    best = best_match(matches)
    logger.info(f"[matcher] best match label={best.label} distance={best.distance:.4f} threshold={threshold}")
    if best.distance < threshold:
        return VerificationOutcome(matched=True, label=best.label, distance=best.distance,
                                   state=AuthState.MATCHED, message=matched_message(best.label))
    return VerificationOutcome(matched=False, distance=best.distance,
                               state=AuthState.DENIED, message=DENIED_MESSAGE)


class Verifier:
    """
    Runs one verification: sample the live frame, extract a descriptor, decide.

    ``sample_frame`` and ``references`` are async callables so the verifier does not
    care where frames or references come from. References are only requested once a
    live face has been found.
    """
    def __init__(self,
                 engine,
                 sample_frame: Callable[[], Awaitable[np.ndarray]],
                 references: Callable[[], Awaitable[List[ReferenceIdentity]]],
                 threshold: float = DEFAULT_THRESHOLD):
        self.engine = engine
        self.sample_frame = sample_frame
        self.references = references
        self.threshold = float(threshold)

    async def verify(self) -> VerificationOutcome:
        frame = await self.sample_frame()
        live = await self.engine.detect_single(frame) if frame is not None else None
        if live is None or len(live.descriptor) == 0:
            logger.info("[matcher] no face in live frame")
            return decide(None, [], self.threshold)
        refs = await self.references()
        return decide(live.descriptor, refs, self.threshold)
