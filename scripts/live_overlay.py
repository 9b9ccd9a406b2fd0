
"""Run the live camera window with verification.

Usage:
    uvicorn api.main:app --reload  # (separate, for API)
    python scripts/live_overlay.py  # (to see camera overlay window)

Press 'v' to verify, 'q' to quit the window.
"""
import asyncio
import logging

from core.config import Settings
from core.live import run_live_overlay

if __name__ == '__main__':
    s = Settings()
    logging.basicConfig(level=getattr(logging, s.LOG_LEVEL, logging.INFO))
    print(asyncio.run(run_live_overlay(s)))
