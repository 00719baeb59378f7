"""Entry point: ``python -m userhub_sync_worker``."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

from dotenv import load_dotenv

from userhub_cdc import CdcSettings, FatalSetupError
from userhub_core.correlation import CorrelationIdFilter
from userhub_core.primitives.exceptions import ConfigurationError

from .bootstrap import run_sync_worker

logger = logging.getLogger("userhub.sync_worker")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s]: %(message)s"


def _configure_logging(level: int | str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        handler.addFilter(CorrelationIdFilter())


async def _serve(settings: CdcSettings) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)
    stats = await run_sync_worker(settings, stop_event)
    logger.info("Sync worker finished: %s", stats.as_dict())


def main() -> int:
    load_dotenv()
    try:
        settings = CdcSettings.from_env()
    except ConfigurationError as e:
        _configure_logging(logging.INFO)
        logger.error("Invalid configuration: %s", e)
        return 2

    _configure_logging(settings.log_level.upper())
    try:
        asyncio.run(_serve(settings))
    except FatalSetupError as e:
        logger.error("Sync worker could not start: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
