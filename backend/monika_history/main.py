"""
Admin application and reporting scheduler for monika-history.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from loguru import logger

from monika_history import __version__
from monika_history.api import logs
from monika_history.config import MonikaConfig, Settings, settings as default_settings, load_config
from monika_history.exceptions import HandshakeError, StoreClosedError
from monika_history.middleware.correlation import CorrelationIdMiddleware
from monika_history.services import RecordStore, LogWriter, SymonReporter, HandshakeOutcome, fingerprint
from monika_history.services.reporter import ReportingJob
from monika_history.utils.logger import setup_logger


async def reporting_loop(job: ReportingJob):
    """Background task that runs one report cycle per interval."""
    while True:
        try:
            await asyncio.sleep(job.interval)
            await job.run()
        except asyncio.CancelledError:
            logger.debug(f"Background task '{job.name}' cancelled")
            raise  # Re-raise to properly signal cancellation
        except (StoreClosedError, HandshakeError) as e:
            # Store or reporter closed under us; no later cycle can succeed
            logger.info(f"Background task '{job.name}' stopped: {e}")
            return
        except Exception as e:
            logger.error(f"Error in background task '{job.name}': {e}")
            # Continue loop to retry on next interval


def create_app(
    config: MonikaConfig,
    settings: Optional[Settings] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the admin application.

    The lifespan opens the history store, performs the Symon handshake when
    Symon is configured, and runs the reporting loop until shutdown.

    Args:
        config: Loaded Monika configuration
        settings: Process settings (defaults to the environment)
        configure_logging: Install loguru handlers on startup
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if configure_logging:
            setup_logger(settings)
        logger.info("Starting monika-history...")

        store = RecordStore(settings.resolved_database_path(), echo=settings.debug)
        await store.open()
        app.state.store = store
        app.state.log_writer = LogWriter(store)
        app.state.config = config
        app.state.reporter = None
        app.state.report_task = None

        try:
            if config.symon:
                config_version = fingerprint(config)
                reporter = SymonReporter(store, config.symon, config_version)
                app.state.reporter = reporter

                outcome = await reporter.handshake()
                if outcome == HandshakeOutcome.REJECTED:
                    raise HandshakeError(f"Symon at {config.symon.url} rejected instance {config.symon.id}")

                job = reporter.schedule_reporting()
                app.state.report_task = asyncio.create_task(reporting_loop(job), name=job.name)
                logger.info(f"Reporting to Symon every {job.interval}s (config version {config_version})")
            else:
                logger.info("Symon is not configured - history is kept locally only")
        except Exception:
            if app.state.reporter:
                await app.state.reporter.close()
            await store.close()
            raise

        yield

        # Shutdown
        logger.info("Shutting down monika-history...")
        task = app.state.report_task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if app.state.reporter:
            await app.state.reporter.close()
        await store.close()
        logger.info("monika-history shut down complete")

    app = FastAPI(
        title="monika-history",
        description="Probe history store and Symon reporter",
        version=__version__,
        lifespan=lifespan
    )

    # Correlation ID middleware (first, to capture all requests)
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(logs.router)

    @app.get("/api/status/health")
    async def health_check(request: Request):
        """Liveness with reporter state."""
        reporter = getattr(request.app.state, "reporter", None)
        return {
            "status": "healthy",
            "version": __version__,
            "reporter": reporter.state.value if reporter else None,
        }

    return app


def run():
    """Console entry point: load settings and config, then serve the admin API."""
    import uvicorn

    settings = default_settings
    config = load_config(settings.config_file) if settings.config_file else MonikaConfig()
    uvicorn.run(create_app(config, settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
