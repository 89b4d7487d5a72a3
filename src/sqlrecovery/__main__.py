from __future__ import annotations

import asyncio
import uuid

from sqlrecovery.backends import AzureResourceClient, build_clients
from sqlrecovery.core.config import Settings, get_settings
from sqlrecovery.core.exceptions import BaseApplicationException
from sqlrecovery.core.logging import add_context, configure_logging, get_logger
from sqlrecovery.orchestrator import RecoveryOrchestrator, RunOutcome

logger = get_logger(__name__)


async def run(settings: Settings) -> RunOutcome:
    clients = await build_clients(settings.azure)
    try:
        orchestrator = RecoveryOrchestrator(
            AzureResourceClient(clients),
            settings.recovery,
            location=settings.azure.location,
        )
        return await orchestrator.run()
    finally:
        await clients.close()


def main() -> None:
    try:
        settings = get_settings()
        obs = settings.observability
        configure_logging(
            level=obs.log_level,
            fmt=obs.log_format,
            log_file=obs.log_file,
            max_bytes=obs.log_rotation_size_mb * 1024 * 1024,
            retention=obs.log_retention_days,
            context={"service": "sqlrecovery", "version": settings.app_version},
        )
        add_context(run_id=uuid.uuid4().hex[:12])
        logger.debug("Loaded configuration", config=settings.export_safe_config())
        asyncio.run(run(settings))
    except BaseApplicationException as e:
        logger.exception("Recovery run failed", **e.to_dict())
    except Exception:
        logger.exception("Recovery run failed")


if __name__ == "__main__":
    main()
