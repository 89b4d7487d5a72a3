"""Point-in-time and dropped-database recovery run against Azure SQL.

The run creates a resource group, a logical server and two databases, then:

- waits for a restore point on the second database and restores a copy of it
  at the restore point's earliest time, deleting that copy straight away;
- deletes the first database, waits for its restorable dropped-database
  record and restores it from that record;
- deletes the remaining databases and the server.

The resource group is deleted on every exit path once it exists. Running out
of polling attempts ends the run early with a non-completed ``RunOutcome``
instead of raising.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from enum import Enum

from sqlrecovery.backends.base import CloudResourceClient
from sqlrecovery.core.config import RecoveryConfig
from sqlrecovery.core.exceptions import ValidationException
from sqlrecovery.core.logging import get_logger
from sqlrecovery.core.polling import poll_until
from sqlrecovery.lifecycle import DatabaseLifecycle, DatabaseState
from sqlrecovery.models import (
    DatabaseHandle,
    DatabaseSpec,
    DroppedDatabaseRecord,
    ResourceGroupHandle,
    ServerHandle,
    ServerSpec,
    SubscriptionRef,
)
from sqlrecovery.naming import create_password, create_random_name, validate_name

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]


class RunOutcome(Enum):
    COMPLETED = "completed"
    RESTORE_POINT_TIMEOUT = "restore_point_timeout"
    DROPPED_BACKUP_TIMEOUT = "dropped_backup_timeout"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def compute_restore_wait(earliest: datetime, now: datetime, margin_seconds: float) -> float:
    """Seconds until ``earliest`` plus the safety margin, never negative."""
    return max(0.0, (earliest - now).total_seconds() + margin_seconds)


class RecoveryOrchestrator:
    def __init__(
        self,
        client: CloudResourceClient,
        config: RecoveryConfig | None = None,
        *,
        location: str = "eastus",
        sleep: Sleep = asyncio.sleep,
        clock: Clock = _utcnow,
        name_factory: Callable[[str], str] = create_random_name,
        password_factory: Callable[[], str] = create_password,
    ) -> None:
        self.client = client
        self.config = config or RecoveryConfig()
        self.location = location
        self._sleep = sleep
        self._clock = clock
        self._name = name_factory
        self._password = password_factory
        self.lifecycle = DatabaseLifecycle()

    async def run(self) -> RunOutcome:
        subscription = await self.client.get_default_subscription()
        logger.info("Using subscription", subscription_id=subscription.subscription_id)
        async with self.resource_group_scope(subscription) as group:
            outcome = await self._run_in_group(group)
        logger.info("Run finished", outcome=outcome.value)
        return outcome

    @asynccontextmanager
    async def resource_group_scope(
        self, subscription: SubscriptionRef
    ) -> AsyncIterator[ResourceGroupHandle]:
        group: ResourceGroupHandle | None = None
        try:
            name = self._new_name("resource_group", "rgSQLServer")
            logger.info("Creating resource group", resource_group=name, location=self.location)
            group = await self.client.create_resource_group(subscription, name, self.location)
            logger.info("Created resource group", resource_group=group.name)
            yield group
        finally:
            await self.cleanup(group)

    async def cleanup(self, group: ResourceGroupHandle | None) -> None:
        if group is None:
            return
        try:
            logger.info("Deleting resource group", resource_group=group.name)
            await self.client.delete(group)
            logger.info("Deleted resource group", resource_group=group.name)
        except Exception:
            logger.exception("Resource group cleanup failed", resource_group=group.name)

    def _new_name(self, kind: str, prefix: str) -> str:
        name = self._name(prefix)
        if not validate_name(kind, name):
            raise ValidationException(
                f"generated {kind} name {name!r} is not valid",
                details={"kind": kind, "name": name},
            )
        return name

    async def _run_in_group(self, group: ResourceGroupHandle) -> RunOutcome:
        server = await self._create_server(group)
        db_to_delete = await self._create_database(
            server, "db-to-delete", DatabaseSpec(location=self.location)
        )
        db_to_restore = await self._create_database(
            server, "db-to-restore", DatabaseSpec(location=self.location)
        )

        if self.config.settle_delay_seconds > 0:
            logger.info(
                "Waiting for the service to register the new server and databases",
                seconds=self.config.settle_delay_seconds,
            )
            await self._sleep(self.config.settle_delay_seconds)

        if not await self._point_in_time_restore(server, db_to_restore):
            return RunOutcome.RESTORE_POINT_TIMEOUT

        restored = await self._restore_dropped_database(server, db_to_delete)
        if restored is None:
            return RunOutcome.DROPPED_BACKUP_TIMEOUT

        await self._delete_database(db_to_restore)
        await self._delete_database(restored)

        logger.info("Deleting SQL server", server=server.name)
        await self.client.delete(server)
        logger.info("Deleted SQL server", server=server.name)
        return RunOutcome.COMPLETED

    async def _create_server(self, group: ResourceGroupHandle) -> ServerHandle:
        name = self._new_name("sql_server", "sqlserver")
        spec = ServerSpec(
            location=self.location,
            administrator_login=f"sqladmin{name}",
            administrator_login_password=self._password(),
        )
        logger.info("Creating SQL server", server=name, resource_group=group.name)
        server = await self.client.create_server(group, name, spec)
        logger.info("Created SQL server", server=server.name)
        return server

    async def _create_database(
        self, server: ServerHandle, prefix: str, spec: DatabaseSpec
    ) -> DatabaseHandle:
        name = self._new_name("sql_database", prefix)
        self.lifecycle.transition(name, DatabaseState.CREATING)
        logger.info(
            "Creating database",
            database=name,
            server=server.name,
            create_mode=spec.create_mode.value,
        )
        db = await self.client.create_database(server, name, spec)
        self.lifecycle.transition(name, DatabaseState.AVAILABLE)
        logger.info("Created database", database=db.name)
        return db

    async def _delete_database(self, db: DatabaseHandle) -> None:
        self.lifecycle.transition(db.name, DatabaseState.DELETING)
        logger.info("Deleting database", database=db.name)
        await self.client.delete(db)
        self.lifecycle.transition(db.name, DatabaseState.DELETED)

    async def _point_in_time_restore(self, server: ServerHandle, source: DatabaseHandle) -> bool:
        logger.info("Waiting for a restore point", database=source.name)
        polled = await poll_until(
            lambda: self.client.list_restore_points(source),
            max_attempts=self.config.restore_point_max_attempts,
            interval=self.config.restore_point_interval_seconds,
            sleep=self._sleep,
            description="restore_point",
        )
        if not polled.satisfied or not polled.value:
            logger.warning(
                "No restore point became available, point-in-time restore is not ready",
                database=source.name,
                attempts=polled.attempts,
            )
            return False
        self.lifecycle.transition(source.name, DatabaseState.RESTORE_POINT_KNOWN)

        restore_point = polled.value[0]
        wait = compute_restore_wait(
            restore_point.earliest_restore_date,
            self._clock(),
            self.config.restore_safety_margin_seconds,
        )
        if wait > 0:
            logger.info(
                "Restore point is not ready yet",
                earliest=restore_point.earliest_restore_date.isoformat(),
                seconds=wait,
            )
            await self._sleep(wait)

        spec = DatabaseSpec.point_in_time_restore(
            source, restore_point, fallback_location=self.location
        )
        restored = await self._create_database(server, "db-restore-pit", spec)
        logger.info(
            "Created point-in-time restored database",
            database=restored.name,
            restore_point_in_time=restore_point.earliest_restore_date.isoformat(),
        )
        await self._delete_database(restored)
        return True

    async def _restore_dropped_database(
        self, server: ServerHandle, victim: DatabaseHandle
    ) -> DatabaseHandle | None:
        await self._delete_database(victim)

        def _find(records: list[DroppedDatabaseRecord]) -> DroppedDatabaseRecord | None:
            return next((r for r in records if r.database_name == victim.name), None)

        logger.info("Waiting for the dropped database backup", database=victim.name)
        polled = await poll_until(
            lambda: self.client.list_dropped_databases(server),
            max_attempts=self.config.dropped_database_max_attempts,
            interval=self.config.dropped_database_interval_seconds,
            predicate=lambda records: _find(records) is not None,
            sleep=self._sleep,
            description="dropped_database",
        )
        record = _find(polled.value or [])
        if record is None:
            logger.warning(
                "Dropped database backup did not become available",
                database=victim.name,
                attempts=polled.attempts,
            )
            return None
        self.lifecycle.transition(victim.name, DatabaseState.DROPPED_BACKUP_AVAILABLE)

        logger.info("Restoring dropped database", source=record.id)
        spec = DatabaseSpec.from_dropped_backup(
            record,
            fallback_location=self.location,
            tags=self.config.restored_database_tags,
        )
        restored = await self._create_database(server, "db-restore-deleted", spec)
        logger.info("Restored dropped database", database=restored.name)
        return restored
