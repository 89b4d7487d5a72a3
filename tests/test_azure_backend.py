import asyncio
from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
from azure.core.exceptions import ClientAuthenticationError, HttpResponseError, ServiceRequestError
from azure.mgmt.sql.models import RestorePointType

from sqlrecovery.backends.azure import AzureResourceClient
from sqlrecovery.backends.base import CloudResourceClient
from sqlrecovery.backends.clients import Clients, classify
from sqlrecovery.core.exceptions import CloudOperationError
from sqlrecovery.models import (
    CreateMode,
    DatabaseHandle,
    DatabaseSpec,
    ResourceGroupHandle,
    ServerHandle,
)

SERVER_ID = "/subscriptions/sid/resourceGroups/rg1/providers/Microsoft.Sql/servers/srv1"
SERVER = ServerHandle(id=SERVER_ID, name="srv1", location="eastus", resource_group="rg1")
DB = DatabaseHandle(id=f"{SERVER_ID}/databases/db1", name="db1", server=SERVER, location="eastus")
EARLIEST = datetime(2024, 5, 1, 11, 0, tzinfo=UTC)
CREATED = datetime(2024, 5, 1, 11, 30, tzinfo=UTC)


class _Poller:
    def __init__(self, result: object = None) -> None:
        self._result = result

    async def result(self) -> object:
        return self._result


async def _aiter(items):
    for item in items:
        yield item


class _Databases:
    def __init__(self) -> None:
        self.created: list[tuple] = []
        self.deleted: list[tuple] = []
        self.delete_error: Exception | None = None

    async def begin_create_or_update(self, rg, server, name, body):
        self.created.append((rg, server, name, body))
        db = SimpleNamespace(id=f"{SERVER_ID}/databases/{name}", name=name, location=None)
        return _Poller(db)

    async def begin_delete(self, rg, server, name):
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append((rg, server, name))
        return _Poller()


def _clients(**sql_parts) -> Clients:
    sql = SimpleNamespace(
        databases=sql_parts.get("databases", _Databases()),
        servers=sql_parts.get("servers"),
        restore_points=sql_parts.get("restore_points"),
        restorable_dropped_databases=sql_parts.get("restorable_dropped_databases"),
    )
    return Clients(
        subscription_id="sid",
        cred=SimpleNamespace(),
        subs=SimpleNamespace(),
        res=SimpleNamespace(),
        sql=sql,
    )


def test_azure_client_satisfies_protocol() -> None:
    assert isinstance(AzureResourceClient(_clients()), CloudResourceClient)


def test_create_database_sends_restore_fields() -> None:
    databases = _Databases()
    client = AzureResourceClient(_clients(databases=databases))
    spec = DatabaseSpec(
        location="eastus",
        create_mode=CreateMode.POINT_IN_TIME_RESTORE,
        source_resource_id=DB.id,
        restore_point_in_time=EARLIEST,
    )

    handle = asyncio.run(client.create_database(SERVER, "db-restore-pit1", spec))

    rg, server, name, body = databases.created[0]
    assert (rg, server, name) == ("rg1", "srv1", "db-restore-pit1")
    assert body.create_mode == "PointInTimeRestore"
    assert body.source_resource_id == DB.id
    assert body.restore_point_in_time == EARLIEST
    assert handle.name == "db-restore-pit1"
    assert handle.server is SERVER
    assert handle.location == "eastus"
    assert handle.create_mode is CreateMode.POINT_IN_TIME_RESTORE
    assert handle.source_resource_id == DB.id


def test_list_restore_points_maps_sdk_models() -> None:
    calls = []

    def list_by_database(rg, server, name):
        calls.append((rg, server, name))
        return _aiter(
            [
                SimpleNamespace(
                    earliest_restore_date=EARLIEST,
                    location="eastus",
                    restore_point_type=RestorePointType.CONTINUOUS,
                ),
                SimpleNamespace(
                    earliest_restore_date=None,
                    restore_point_creation_date=CREATED,
                    location="eastus",
                    restore_point_type=RestorePointType.DISCRETE,
                ),
                SimpleNamespace(
                    earliest_restore_date=None,
                    restore_point_creation_date=None,
                    location=None,
                    restore_point_type=None,
                ),
            ]
        )

    client = AzureResourceClient(
        _clients(restore_points=SimpleNamespace(list_by_database=list_by_database))
    )

    points = asyncio.run(client.list_restore_points(DB))

    assert calls == [("rg1", "srv1", "db1")]
    assert len(points) == 2
    assert points[0].database_id == DB.id
    assert points[0].earliest_restore_date == EARLIEST
    assert points[0].restore_point_type == "CONTINUOUS"
    assert points[1].earliest_restore_date == CREATED
    assert points[1].restore_point_type == "DISCRETE"


def test_list_dropped_databases_maps_sdk_models() -> None:
    dropped = SimpleNamespace(
        id=f"{SERVER_ID}/restorableDroppedDatabases/db1,1",
        database_name="db1",
        location="eastus",
        max_size_bytes=1024,
        deletion_date=EARLIEST,
        earliest_restore_date=EARLIEST,
    )
    client = AzureResourceClient(
        _clients(
            restorable_dropped_databases=SimpleNamespace(
                list_by_server=lambda rg, server: _aiter([dropped])
            )
        )
    )

    records = asyncio.run(client.list_dropped_databases(SERVER))

    assert [r.id for r in records] == [dropped.id]
    assert records[0].max_size_bytes == 1024


def test_delete_failure_is_wrapped_and_not_retried() -> None:
    databases = _Databases()
    error = HttpResponseError(message="Conflict")
    error.status_code = 409
    databases.delete_error = error
    client = AzureResourceClient(_clients(databases=databases))

    with pytest.raises(CloudOperationError) as exc:
        asyncio.run(client.delete(DB))

    assert exc.value.code == "http_409"
    assert exc.value.status_code == 409
    assert exc.value.operation == "databases.delete"
    assert exc.value.retryable is False
    assert exc.value.__cause__ is error


def test_delete_rejects_unknown_handle() -> None:
    client = AzureResourceClient(_clients())
    with pytest.raises(TypeError):
        asyncio.run(client.delete("rg1"))  # type: ignore[arg-type]


def test_delete_resource_group_waits_for_poller() -> None:
    deleted = []

    async def begin_delete(name):
        deleted.append(name)
        return _Poller()

    clients = _clients()
    clients = Clients(
        subscription_id="sid",
        cred=clients.cred,
        subs=clients.subs,
        res=SimpleNamespace(resource_groups=SimpleNamespace(begin_delete=begin_delete)),
        sql=clients.sql,
    )
    group = ResourceGroupHandle(
        id="/subscriptions/sid/resourceGroups/rg1", name="rg1", location="eastus"
    )

    asyncio.run(AzureResourceClient(clients).delete(group))

    assert deleted == ["rg1"]


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ClientAuthenticationError("denied"), (False, "auth_error")),
        (ServiceRequestError("timed out"), (True, "transient_io")),
        (HttpResponseError("boom"), (False, "http_error")),
    ],
)
def test_classify(error: Exception, expected: tuple[bool, str]) -> None:
    retryable, code, _ = classify(error)
    assert (retryable, code) == expected


def test_classify_throttling_is_retryable() -> None:
    error = HttpResponseError("slow down")
    error.status_code = 429
    assert classify(error) == (True, "http_429", 429)
