"""
pip - pastebin fed over SSH, read over HTTP.

Entry point: wires storage, the language classifier, the SSH listener and
the FastAPI application, and runs both listeners until SIGINT/SIGTERM.
"""
import asyncio
import contextlib
import logging
import signal
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pipbin.classifier import LanguageClassifier
from pipbin.config import Settings, settings
from pipbin.database import PasteDatabase
from pipbin.errors import ClassifierUnavailable, ConfigError, StorageFailure
from pipbin.identity import IdentityRegistry
from pipbin.ingest import IngestionPipeline
from pipbin.render import RenderingGateway
from pipbin.routes import health, pastes
from pipbin.ssh_server import SessionHandler, start_ssh_server, usage_hint

logger = logging.getLogger(__name__)


def create_app(gateway: RenderingGateway, db: PasteDatabase) -> FastAPI:
    """Build the FastAPI application around an already connected gateway."""
    app = FastAPI(
        title="pip",
        description="A pastebin you feed over SSH",
        version="1.0.0",
    )

    # Add CORS middleware (pastes are public, anyone with the link can read)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.state.gateway = gateway
    app.state.db = db

    # Health first so /api/healthz is not taken for a short id
    app.include_router(health.router)
    app.include_router(pastes.router)
    return app


class HTTPServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to serve() below."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield


async def shutdown(http_server, http_task: asyncio.Task, ssh_server, handler: SessionHandler,
                   timeout: float) -> None:
    """
    Stop both listeners under one deadline.

    The SSH acceptor stops taking connections at once; HTTP graceful shutdown
    and the drain of in-flight SSH sessions then run side by side, each
    bounded by ``timeout``.
    """
    logger.info("Stopping SSH and HTTP servers")
    ssh_server.close()
    http_server.should_exit = True
    await asyncio.gather(
        ssh_server.wait_closed(),
        handler.drain(timeout),
        http_task,
        return_exceptions=True,
    )


async def serve(config: Settings = settings) -> None:
    """
    Start both listeners and block until a shutdown signal.

    Raises:
        ConfigError: If configuration is missing or invalid
        StorageFailure: If the database cannot be reached
        ClassifierUnavailable: If the language classifier fails its health check
    """
    config.validate()
    timeout = config.shutdown_timeout

    db = await PasteDatabase.connect(config.DATABASE_URL)
    classifier = LanguageClassifier(config.GUESSLANG_URL)
    try:
        await classifier.health_check()
        logger.info(f"Initialized language detector at {config.GUESSLANG_URL}")

        handler = SessionHandler(
            IdentityRegistry(db),
            IngestionPipeline(db, classifier, config.APP_DOMAIN, config.max_paste_bytes),
            usage_hint(config.SSH_HOST, config.ssh_port),
        )
        ssh_server = await start_ssh_server(
            config.SSH_HOST, config.ssh_port, config.SSH_HOST_KEY_PATH, handler,
        )

        app = create_app(RenderingGateway(db), db)
        http_server = HTTPServer(uvicorn.Config(
            app,
            host=config.HTTP_HOST,
            port=config.http_port,
            log_config=None,
            timeout_graceful_shutdown=timeout,
        ))

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        logger.info(f"Starting HTTP server on {config.HTTP_HOST}:{config.http_port}")
        http_task = asyncio.create_task(http_server.serve())
        stop_task = asyncio.create_task(stop.wait())
        logger.info("Ready!")
        try:
            await asyncio.wait({http_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            await shutdown(http_server, http_task, ssh_server, handler, timeout)
        http_task.result()
    finally:
        await classifier.aclose()
        await db.close()


def run() -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        asyncio.run(serve())
    except (ConfigError, StorageFailure, ClassifierUnavailable) as e:
        logger.error(f"❌ Could not start pip: {type(e).__name__}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
