from __future__ import annotations

from typing import Protocol, runtime_checkable

from sqlrecovery.models import (
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


@runtime_checkable
class CloudResourceClient(Protocol):
    """Control-plane operations the recovery runner needs.

    Create and delete calls return only once the long-running operation has
    finished. Listing calls return an empty list until the service has
    populated the data.
    """

    async def get_default_subscription(self) -> SubscriptionRef: ...

    async def create_resource_group(
        self, subscription: SubscriptionRef, name: str, location: str
    ) -> ResourceGroupHandle: ...

    async def create_server(
        self, group: ResourceGroupHandle, name: str, spec: ServerSpec
    ) -> ServerHandle: ...

    async def create_database(
        self, server: ServerHandle, name: str, spec: DatabaseSpec
    ) -> DatabaseHandle: ...

    async def delete(self, handle: ResourceHandle) -> None: ...

    async def list_restore_points(self, database: DatabaseHandle) -> list[RestorePoint]: ...

    async def list_dropped_databases(self, server: ServerHandle) -> list[DroppedDatabaseRecord]: ...
