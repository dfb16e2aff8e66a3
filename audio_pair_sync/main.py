"""
Main entry point for Audio Pair Sync
"""

import os
import sys
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI
from loguru import logger

from .api import DeltaHub, router
from .bus import BusControlListener, BusPublisher
from .config import LogSettings, Settings, load_settings
from .devices import AmpClient, JsonHttpTransport, SourceClient
from .sync import PairRegistry, PairRemoved, PairService, SyncRouter


def setup_logging(settings: Optional[LogSettings] = None):
    """Setup logging configuration"""
    settings = settings or LogSettings()
    log_dir = os.path.expanduser(settings.directory)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "audio-pair-sync.log")
    logger.remove()
    logger.add(
        log_file,
        level=settings.level,
        rotation=settings.rotation,
        retention=settings.retention,
    )
    logger.add(sys.stderr, level=settings.level)


async def _start(component: Any):
    start = getattr(component, "start", None)
    if start is not None:
        await start()


async def _stop(component: Any):
    stop = getattr(component, "stop", None)
    if stop is None:
        return
    try:
        await stop()
    except Exception as e:
        logger.error(f"Error stopping {type(component).__name__}: {e}")


def create_app(
    settings: Optional[Settings] = None,
    source: Optional[Any] = None,
    amp: Optional[Any] = None,
) -> FastAPI:
    """Wire the registry, router, device clients and bus into a FastAPI app"""
    settings = settings or Settings()
    polling = settings.polling

    registry = PairRegistry()
    if source is None:
        source = SourceClient(
            poll_interval=polling.source_interval,
            transport=JsonHttpTransport(timeout=polling.request_timeout),
        )
    if amp is None:
        amp = AmpClient(
            poll_interval=polling.amp_interval,
            transport=JsonHttpTransport(timeout=polling.request_timeout),
        )

    publisher = BusPublisher(
        enabled=settings.bus.enabled, device_instance=settings.bus.device_instance
    )
    sync_router = SyncRouter(registry, source, amp, publisher)
    for device in (source, amp):
        if hasattr(device, "set_event_sink"):
            device.set_event_sink(sync_router.submit)

    def forget_removed(event):
        if isinstance(event, PairRemoved) and event.name not in registry:
            publisher.forget(event.name)

    registry.subscribe(forget_removed)

    hub = DeltaHub()
    publisher.add_sink(hub.push)
    control = BusControlListener(sync_router.submit)
    service = PairService(
        registry, sync_router, source, amp, extra_diagnostics={"bus": publisher}
    )

    app = FastAPI(title="Audio Pair Sync")
    app.state.settings = settings
    app.state.service = service
    app.state.control = control
    app.state.hub = hub
    app.state.publisher = publisher
    app.include_router(router)

    @app.on_event("startup")
    async def startup_event():
        """Start routing, load configured pairs, then start polling"""
        logger.info("Starting Audio Pair Sync services")
        await sync_router.start()
        if settings.device_pairs:
            registry.import_all(settings.device_pairs)
        for component in (source, amp, publisher):
            await _start(component)
        logger.info(f"Loaded {len(registry)} device pairs")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop polling and routing"""
        logger.info("Stopping Audio Pair Sync services")
        for component in (source, amp, publisher):
            await _stop(component)
        await sync_router.stop()

    return app


def main():
    """Main entry point"""
    settings = load_settings()
    setup_logging(settings.logging)
    logger.info("Starting Audio Pair Sync")

    app = create_app(settings)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
