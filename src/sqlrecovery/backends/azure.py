from __future__ import annotations

from typing import Any

from azure.mgmt.sql.models import Database, Server

from sqlrecovery.backends.clients import Clients, run_poller, translate_errors
from sqlrecovery.core.logging import get_logger
from sqlrecovery.models import (
    CreateMode,
    DatabaseHandle,
    DatabaseSpec,
    DroppedDatabaseRecord,
    ResourceGroupHandle,
    ResourceHandle,
    RestorePoint,
    ServerHandle,
    ServerSpec,
    SubscriptionRef,
)

logger = get_logger(__name__)


def _create_mode(value: Any) -> CreateMode:
    try:
        return CreateMode(str(getattr(value, "value", value)))
    except ValueError:
        return CreateMode.DEFAULT


def _database_handle(db: Any, server: ServerHandle, spec: DatabaseSpec) -> DatabaseHandle:
    # The service echoes back few of the request's restore fields.
    return DatabaseHandle(
        id=db.id,
        name=db.name,
        server=server,
        location=db.location or spec.location,
        create_mode=_create_mode(getattr(db, "create_mode", None) or spec.create_mode),
        source_resource_id=getattr(db, "source_resource_id", None) or spec.source_resource_id,
        restore_point_in_time=getattr(db, "restore_point_in_time", None)
        or spec.restore_point_in_time,
        max_size_bytes=getattr(db, "max_size_bytes", None) or spec.max_size_bytes,
        tags=dict(getattr(db, "tags", None) or spec.tags),
    )


class AzureResourceClient:
    """``CloudResourceClient`` over the Azure resource and SQL management SDKs."""

    def __init__(self, clients: Clients) -> None:
        self._clients = clients

    async def get_default_subscription(self) -> SubscriptionRef:
        sid = self._clients.subscription_id
        async with translate_errors("subscriptions.get", subscription_id=sid):
            sub = await self._clients.subs.subscriptions.get(sid)
        return SubscriptionRef(subscription_id=sid, display_name=getattr(sub, "display_name", None))

    async def create_resource_group(
        self, subscription: SubscriptionRef, name: str, location: str
    ) -> ResourceGroupHandle:
        async with translate_errors(
            "resource_groups.create_or_update",
            subscription_id=subscription.subscription_id,
            resource_group=name,
        ):
            rg = await self._clients.res.resource_groups.create_or_update(
                name, {"location": location}
            )
        return ResourceGroupHandle(id=rg.id, name=rg.name, location=rg.location)

    async def create_server(
        self, group: ResourceGroupHandle, name: str, spec: ServerSpec
    ) -> ServerHandle:
        body = Server(
            location=spec.location,
            administrator_login=spec.administrator_login,
            administrator_login_password=spec.administrator_login_password.get_secret_value(),
            version=spec.version,
            tags=spec.tags or None,
        )
        server = await run_poller(
            "servers.create_or_update",
            self._clients.sql.servers.begin_create_or_update(group.name, name, body),
            resource_group=group.name,
            server=name,
        )
        return ServerHandle(
            id=server.id,
            name=server.name,
            location=server.location or spec.location,
            resource_group=group.name,
            administrator_login=getattr(server, "administrator_login", None)
            or spec.administrator_login,
        )

    async def create_database(
        self, server: ServerHandle, name: str, spec: DatabaseSpec
    ) -> DatabaseHandle:
        body = Database(
            location=spec.location,
            create_mode=spec.create_mode.value,
            source_resource_id=spec.source_resource_id,
            restore_point_in_time=spec.restore_point_in_time,
            max_size_bytes=spec.max_size_bytes,
            tags=spec.tags or None,
        )
        db = await run_poller(
            "databases.create_or_update",
            self._clients.sql.databases.begin_create_or_update(
                server.resource_group, server.name, name, body
            ),
            server=server.name,
            database=name,
            create_mode=spec.create_mode.value,
        )
        return _database_handle(db, server, spec)

    async def delete(self, handle: ResourceHandle) -> None:
        if isinstance(handle, DatabaseHandle):
            await run_poller(
                "databases.delete",
                self._clients.sql.databases.begin_delete(
                    handle.server.resource_group, handle.server.name, handle.name
                ),
                server=handle.server.name,
                database=handle.name,
            )
        elif isinstance(handle, ServerHandle):
            await run_poller(
                "servers.delete",
                self._clients.sql.servers.begin_delete(handle.resource_group, handle.name),
                server=handle.name,
            )
        elif isinstance(handle, ResourceGroupHandle):
            await run_poller(
                "resource_groups.delete",
                self._clients.res.resource_groups.begin_delete(handle.name),
                resource_group=handle.name,
            )
        else:
            raise TypeError(f"cannot delete {type(handle).__name__}")

    async def list_restore_points(self, database: DatabaseHandle) -> list[RestorePoint]:
        """Restore points of ``database``.

        Discrete restore points carry no earliest restore date; their creation
        date is used instead.
        """
        points: list[RestorePoint] = []
        async with translate_errors("restore_points.list_by_database", database=database.name):
            async for rp in self._clients.sql.restore_points.list_by_database(
                database.server.resource_group, database.server.name, database.name
            ):
                earliest = rp.earliest_restore_date or getattr(
                    rp, "restore_point_creation_date", None
                )
                if earliest is None:
                    continue
                kind = rp.restore_point_type
                points.append(
                    RestorePoint(
                        database_id=database.id,
                        earliest_restore_date=earliest,
                        location=rp.location,
                        restore_point_type=str(getattr(kind, "value", kind)) if kind else None,
                    )
                )
        return points

    async def list_dropped_databases(self, server: ServerHandle) -> list[DroppedDatabaseRecord]:
        async with translate_errors(
            "restorable_dropped_databases.list_by_server", server=server.name
        ):
            return [
                DroppedDatabaseRecord(
                    id=dropped.id,
                    database_name=dropped.database_name,
                    location=dropped.location,
                    max_size_bytes=dropped.max_size_bytes,
                    deletion_date=dropped.deletion_date,
                    earliest_restore_date=dropped.earliest_restore_date,
                )
                async for dropped in self._clients.sql.restorable_dropped_databases.list_by_server(
                    server.resource_group, server.name
                )
            ]
