"""
FastAPI application entrypoint.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
import api.routes as routes
from core.session import FaceAuthSession

logging.basicConfig(level=getattr(logging, routes.settings.LOG_LEVEL, logging.INFO))


@asynccontextmanager
async def lifespan(app: FastAPI):
    routes.session = FaceAuthSession(routes.settings)
    await routes.session.start()
    try:
        yield
    finally:
        await routes.session.stop()
        routes.session = None


app = FastAPI(title="Face Verification API", version="1.0.0", lifespan=lifespan)
app.include_router(routes.router)

@app.get("/health")
def health() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Simple status payload.
    """
    return {"status": "ok"}
