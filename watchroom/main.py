"""FastAPI application entry point for WatchRoom."""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from watchroom.config import Settings, get_settings
from watchroom.routers import rooms_router, websocket_router
from watchroom.routers.websocket import ConnectionManager
from watchroom.services.event_router import EventRouter

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Starts the room cleanup sweep on startup and cancels every pending
    timer on shutdown. Rooms are not persisted across restarts.
    """
    # Startup
    logger.info("Starting WatchRoom server...")
    app.state.event_router.cleanup.start()
    logger.info("WatchRoom server started successfully")

    yield

    # Shutdown
    logger.info("Shutting down WatchRoom server...")
    app.state.event_router.cleanup.stop()
    logger.info("WatchRoom server shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="WatchRoom",
        description="Synchronized watch rooms with chat and voice signaling",
        version="1.0.0",
        lifespan=lifespan,
        debug=settings.debug,
    )

    connection_manager = ConnectionManager()
    app.state.connection_manager = connection_manager
    app.state.event_router = EventRouter(connection_manager, settings=settings)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(rooms_router, prefix="/api")
    app.include_router(websocket_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "rooms": len(app.state.event_router.registry),
            "connections": len(app.state.connection_manager),
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "watchroom.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug,
    )
