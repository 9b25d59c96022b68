"""FastAPI application setup for the dev chat server."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from chatsync.logging_config import get_logger

from .routes import create_chat_router
from .storage import DevStorage

logger = get_logger(__name__)


def create_dev_app(storage: DevStorage | None = None, prefix: str = "/api/mobile") -> FastAPI:
    """Create and configure the dev server FastAPI application."""
    storage = storage or DevStorage()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open storage on startup, close it on shutdown."""
        if not storage.initialized:
            await storage.init()
            logger.info("Dev storage initialized")
        yield
        await storage.close()
        logger.info("Dev storage closed")

    fastapi_app = FastAPI(
        title="Chat Dev Server",
        description="Reference implementation of the chat REST contract",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.storage = storage
    fastapi_app.include_router(create_chat_router(storage, prefix=prefix))

    return fastapi_app
