import logging
from contextlib import asynccontextmanager

import anyio
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reelnotify.config import get_settings
from reelnotify.infrastructure.database import engine, initialize_database
from reelnotify.infrastructure.notifications import NotificationDispatcher
from reelnotify.interfaces.api.routes import register_routes


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema, run the dispatch loop for the app's lifetime, then clean up."""

    initialize_database()
    dispatcher: NotificationDispatcher = app.state.notification_dispatcher
    async with anyio.create_task_group() as task_group:
        task_group.start_soon(dispatcher.run)
        yield
        task_group.cancel_scope.cancel()
    engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="reelnotify", lifespan=lifespan)
    app.state.notification_dispatcher = NotificationDispatcher(
        control_buffer_size=settings.notification_dispatch_queue_size
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn.

    Inbound websocket frames are capped at the transport level with the same
    limit the notification sessions enforce.
    """

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
        ws_max_size=settings.notification_max_message_bytes,
    )


if __name__ == "__main__":
    run()
