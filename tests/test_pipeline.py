
import asyncio
import cv2
import pytest

from core.config import Settings
from core.errors import ReferenceFetchError
from core.models import AuthState
from core.pipeline import verify_image
from conftest import FakeSource, face_blob, solid


def write_refs(tmp_path):
    refs = tmp_path / "refs"
    refs.mkdir()
    cv2.imwrite(str(refs / "alice.png"), solid(10))
    cv2.imwrite(str(refs / "bob.png"), solid(20))
    cv2.imwrite(str(refs / "nobody.png"), solid(30))
    return refs


def test_verify_image_matches_local_reference(fake_deepface, tmp_path):
    fake_deepface.table[10] = [face_blob([1.0, 0.0])]
    fake_deepface.table[20] = [face_blob([0.0, 1.0])]
    fake_deepface.table[40] = [face_blob([2.0, 0.1])]
    probe = tmp_path / "probe.png"
    cv2.imwrite(str(probe), solid(40))

    s = Settings(REFERENCE_SOURCE="local", REFERENCE_DIR=str(write_refs(tmp_path)))
    out = asyncio.run(verify_image(str(probe), s))
    assert out.matched and out.label == "alice"
    assert out.distance < 0.6


def test_verify_image_without_face(fake_deepface, tmp_path):
    fake_deepface.table[10] = [face_blob([1.0, 0.0])]
    probe = tmp_path / "probe.png"
    cv2.imwrite(str(probe), solid(50))

    s = Settings(REFERENCE_SOURCE="local", REFERENCE_DIR=str(write_refs(tmp_path)))
    out = asyncio.run(verify_image(str(probe), s))
    assert out.message == "No face detected in webcam"


def test_verify_image_reference_backend_down(fake_deepface, tmp_path):
    fake_deepface.table[40] = [face_blob([1.0, 0.0])]
    live = tmp_path / "live.png"
    cv2.imwrite(str(live), solid(40))
    source = FakeSource(error=ReferenceFetchError("backend down"))

    out = asyncio.run(verify_image(str(live), Settings(), source=source))
    assert out.state == AuthState.NO_REFERENCES
    assert out.message == "No valid reference faces found"
    assert source.closed


def test_verify_image_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        asyncio.run(verify_image(str(tmp_path / "nope.png"), Settings()))
