import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .. import __version__
from ..common.exceptions import StorageError
from ..core.config import SystemConfig
from ..core.control import SystemController
from . import control, websocket

logger = logging.getLogger(__name__)


def init_app(
    controller: Optional[SystemController] = None,
    config: Optional[SystemConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application"""
    if config is None:
        config = controller.config if controller is not None else SystemConfig.load()
    if controller is None:
        controller = SystemController(config)

    app = FastAPI(
        title="Smart Display Control API",
        description="State, commands and scheduling for a smart display",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.system_controller = controller
    app.state.startup_complete = False

    app.include_router(control.router)
    app.include_router(websocket.router)

    try:
        upload_dir = controller.image_store.ensure_dir()
        app.mount("/uploads", StaticFiles(directory=upload_dir), name="uploads")
    except StorageError as e:
        logger.error(f"Uploads will not be served: {e}")

    @app.on_event("startup")
    async def startup_event():
        """Start the control plane"""
        logger.info("Starting Smart Display Control API")
        try:
            await app.state.system_controller.start()
        except Exception as e:
            logger.error(f"Failed to start system controller: {e}")
            raise
        app.state.startup_complete = True
        logger.info("Startup complete")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop the control plane"""
        logger.info("Shutting down Smart Display Control API")
        app.state.startup_complete = False
        try:
            await app.state.system_controller.stop()
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        controller = app.state.system_controller
        state = controller.store.get()
        running = controller.orchestrator.running
        return {
            "status": "healthy" if app.state.startup_complete else "starting",
            "mode": state.current_mode.value,
            "sleeping": state.is_sleeping,
            "activity": running.value if running else None,
            "subscribers": controller.fanout.connection_count,
            "scheduler": controller.scheduler.running,
            "media_polling": controller.media_poller.running,
        }

    static_dir = config.storage.static_dir
    if static_dir:
        if Path(static_dir).is_dir():
            # Mounted last so API routes take precedence
            app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
        else:
            logger.warning(f"Static directory {static_dir} does not exist, not serving it")

    return app


__all__ = ["init_app"]
