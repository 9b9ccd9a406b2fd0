
from core.config import Settings

def test_Settings():
    s = Settings()
    assert s.MATCH_THRESHOLD == 0.6
    assert s.OVERLAY_INTERVAL == 0.3
    # override via env-like behavior (construct new instance)
    s2 = Settings(CAMERA_INDEX=2, MATCH_THRESHOLD=0.5)
    assert s2.CAMERA_INDEX == 2 and s2.MATCH_THRESHOLD == 0.5

def test_Settings_normalization():
    s = Settings(REFERENCE_SOURCE=" LOCAL ", REFERENCE_API_URL="http://backend:3000/",
                 REFERENCE_CONCURRENCY=0, LOG_LEVEL="debug")
    assert s.REFERENCE_SOURCE == "local"
    assert s.REFERENCE_API_URL == "http://backend:3000"
    assert s.REFERENCE_CONCURRENCY == 1
    assert s.LOG_LEVEL == "DEBUG"
    assert Settings(REFERENCE_SOURCE="ftp").REFERENCE_SOURCE == "remote"
