"""
Reference identities: fetch, decode and describe the faces the live capture is compared against.

Two interchangeable sources:
- RemoteReferenceSource: backend with ``GET /images`` -> [{_id, name}] and ``GET /image/{id}`` -> bytes
- LocalReferenceSource: a directory of image files, labelled by file stem

Both load through a bounded worker pool with a per-item timeout. A failed item is
logged and skipped; the output keeps the listing order.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

import cv2
import httpx
import numpy as np

from core.config import Settings
from core.errors import ReferenceFetchError
from core.models import IdentityRecord, ReferenceIdentity, ReferenceImage
from core.timeouts import with_timeout

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".bmp", ".webp"}

T = TypeVar("T")


def decode_image(data: bytes) -> Optional[np.ndarray]:
    """Decode encoded image bytes to a BGR array; None when the bytes are not an image."""
    if not data:
        return None
    buf = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    return img if img is not None and img.size else None


async def load_bounded(items: Sequence[T],
                       worker: Callable[[T], Awaitable[ReferenceImage]],
                       concurrency: int,
                       timeout: float,
                       name_of: Callable[[T], str]) -> List[ReferenceImage]:
    """Run ``worker`` over ``items`` with at most ``concurrency`` in flight; drop failures."""
    sem = asyncio.Semaphore(max(1, concurrency))

    async def _one(item: T) -> Optional[ReferenceImage]:
        async with sem:
            try:
                return await with_timeout(worker(item), timeout, f"reference '{name_of(item)}'")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"[refs] skipping '{name_of(item)}': {e}")
                return None

    results = await asyncio.gather(*[_one(i) for i in items])
    return [r for r in results if r is not None]


class RemoteReferenceSource:
    """References served by the image backend."""
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.s = settings
        self.base_url = settings.REFERENCE_API_URL
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.REFERENCE_TIMEOUT)

    async def list_identities(self) -> List[IdentityRecord]:
        url = f"{self.base_url}/images"
        try:
            r = await with_timeout(self.client.get(url), self.s.REFERENCE_TIMEOUT, "reference listing")
            r.raise_for_status()
            records = [IdentityRecord.model_validate(item) for item in r.json()]
        except Exception as e:
            logger.exception(f"[refs] listing failed url={url}")
            raise ReferenceFetchError(f"Could not list reference images: {e}") from e
        logger.debug(f"[refs] listing returned {len(records)} identities")
        return records

    async def fetch_image(self, record: IdentityRecord) -> ReferenceImage:
        r = await self.client.get(f"{self.base_url}/image/{record.id}")
        r.raise_for_status()
        img = await asyncio.to_thread(decode_image, r.content)
        if img is None:
            raise ValueError(f"undecodable image for id={record.id}")
        return ReferenceImage(label=record.name, image=img)

    async def load(self) -> List[ReferenceImage]:
        records = await self.list_identities()
        images = await load_bounded(records, self.fetch_image, self.s.REFERENCE_CONCURRENCY,
                                    self.s.REFERENCE_TIMEOUT, lambda rec: rec.name)
        logger.info(f"[refs] fetched {len(images)}/{len(records)} reference images")
        return images

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class LocalReferenceSource:
    """References stored as image files in a directory."""
    def __init__(self, settings: Settings, directory: Optional[str | Path] = None):
        self.s = settings
        self.directory = Path(directory or settings.REFERENCE_DIR)

    def list_files(self) -> List[Path]:
        if not self.directory.is_dir():
            raise ReferenceFetchError(f"Reference directory not found: {self.directory}")
        return sorted(p for p in self.directory.iterdir()
                      if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES)

    async def read_image(self, path: Path) -> ReferenceImage:
        data = await asyncio.to_thread(path.read_bytes)
        img = await asyncio.to_thread(decode_image, data)
        if img is None:
            raise ValueError(f"undecodable image: {path.name}")
        return ReferenceImage(label=path.stem, image=img)

    async def load(self) -> List[ReferenceImage]:
        files = self.list_files()
        images = await load_bounded(files, self.read_image, self.s.REFERENCE_CONCURRENCY,
                                    self.s.REFERENCE_TIMEOUT, lambda p: p.name)
        logger.info(f"[refs] read {len(images)}/{len(files)} reference images from {self.directory}")
        return images

    async def aclose(self) -> None:
        return None


def make_reference_source(settings: Settings):
    if settings.REFERENCE_SOURCE == "local":
        return LocalReferenceSource(settings)
    return RemoteReferenceSource(settings)


class ReferenceLoader:
    """Turns reference images into ReferenceIdentity entries (descriptor or absent)."""
    def __init__(self, engine, source):
        self.engine = engine
        self.source = source
        self.identities: List[ReferenceIdentity] = []

    async def describe(self, ref: ReferenceImage) -> ReferenceIdentity:
        try:
            face = await self.engine.detect_single(ref.image)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[refs] detection failed for '{ref.label}': {e}")
            return ReferenceIdentity(label=ref.label)
        if face is None:
            logger.warning(f"[refs] no face detected in image: {ref.label}")
            return ReferenceIdentity(label=ref.label)
        logger.debug(f"[refs] face detected in {ref.label}")
        return ReferenceIdentity(label=ref.label, descriptor=face.descriptor)

    async def load(self) -> List[ReferenceIdentity]:
        images = await self.source.load()
        identities = [await self.describe(img) for img in images]
        self.identities = identities
        usable = sum(1 for i in identities if i.usable)
        logger.info(f"[refs] {usable}/{len(identities)} references usable")
        return identities

    async def aclose(self) -> None:
        await self.source.aclose()
