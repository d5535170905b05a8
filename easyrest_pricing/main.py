import asyncio
import sys

import uvicorn

from easyrest_pricing.core.app_factory import create_app
from easyrest_pricing.core.config import settings
from easyrest_pricing.core.lifecycle import ManagedServer, ServerLifecycle

app = create_app()


def run() -> None:
    """Serve the API under ServerLifecycle control and exit with its code."""
    config = uvicorn.Config(
        app,
        host=settings.app.host,
        port=settings.app.port,
        log_config=None,
        access_log=False,
    )
    lifecycle = ServerLifecycle(
        ManagedServer(config),
        rate_limiter=app.state.rate_limiter,
        price_source=app.state.price_source,
        sweep_interval_seconds=settings.app.rate_limit_sweep_interval_seconds,
        shutdown_timeout_seconds=settings.app.shutdown_timeout_seconds,
    )
    app.state.lifecycle = lifecycle
    sys.exit(asyncio.run(lifecycle.serve()))


if __name__ == "__main__":
    run()
