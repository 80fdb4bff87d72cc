from __future__ import annotations

import asyncio
import os
import sys

import uvicorn

# Install uvloop for better async performance (Linux/macOS only)
if sys.platform != "win32":
    try:
        import uvloop

        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    except ImportError:
        pass  # uvloop not available, continue with default event loop

from .envs.facilitator_env import get_settings


def _setup_prometheus_multiproc_dir() -> None:
    """Start every run with an empty Prometheus multiprocess directory."""
    prom_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if not prom_dir:
        return

    os.makedirs(prom_dir, exist_ok=True)
    for filename in os.listdir(prom_dir):
        file_path = os.path.join(prom_dir, filename)
        if os.path.isfile(file_path):
            os.remove(file_path)


def main() -> None:
    """Main entry point for the facilitator."""

    settings = get_settings()

    print(f"Starting {settings.app_name} v{settings.app_version}")
    print(f"Lightning backend: {settings.lightning_backend} at {settings.lightning_base_url}")
    if settings.storage_backend == "redis":
        print(f"Replay store: {settings.database_url}")
    else:
        print("Replay store: in-memory (single process only)")
    print(f"API will be available at: http://{settings.api_host}:{settings.api_port}")
    print(f"API Documentation: http://{settings.api_host}:{settings.api_port}/docs")

    # An in-memory replay store is per process, so it forces a single worker.
    reload = settings.api_debug
    single = reload or settings.storage_backend == "memory"
    workers = 1 if single else settings.api_workers

    _setup_prometheus_multiproc_dir()

    uvicorn.run(
        "lnx402.api.facilitator_api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=reload,
        workers=workers,
        log_level="info",
    )


if __name__ == "__main__":
    main()
