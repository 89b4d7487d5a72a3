from datetime import UTC, datetime, timedelta

import pytest

from sqlrecovery.core.exceptions import RestoreRequestError, ValidationException
from sqlrecovery.models import (
    CreateMode,
    DatabaseHandle,
    DatabaseSpec,
    DroppedDatabaseRecord,
    RestorePoint,
    ServerHandle,
)

EARLIEST = datetime(2024, 5, 1, 11, 0, tzinfo=UTC)

SERVER = ServerHandle(
    id="/subscriptions/s/resourceGroups/rg/providers/Microsoft.Sql/servers/srv",
    name="srv",
    location="eastus",
    resource_group="rg",
)
SOURCE = DatabaseHandle(
    id=f"{SERVER.id}/databases/db-b", name="db-b", server=SERVER, location="eastus"
)


def test_point_in_time_restore_references_source_and_earliest_time() -> None:
    rp = RestorePoint(database_id=SOURCE.id, earliest_restore_date=EARLIEST, location="westus")
    spec = DatabaseSpec.point_in_time_restore(SOURCE, rp, fallback_location="eastus")

    assert spec.create_mode is CreateMode.POINT_IN_TIME_RESTORE
    assert spec.source_resource_id == SOURCE.id
    assert spec.restore_point_in_time == EARLIEST
    assert spec.location == "westus"


def test_point_in_time_restore_falls_back_to_configured_location() -> None:
    rp = RestorePoint(database_id=SOURCE.id, earliest_restore_date=EARLIEST)
    spec = DatabaseSpec.point_in_time_restore(SOURCE, rp, fallback_location="eastus")
    assert spec.location == "eastus"


def test_point_in_time_restore_outside_window_is_rejected() -> None:
    rp = RestorePoint(
        database_id=SOURCE.id,
        earliest_restore_date=EARLIEST,
        latest_restore_date=EARLIEST + timedelta(hours=1),
    )
    with pytest.raises(RestoreRequestError):
        DatabaseSpec.point_in_time_restore(
            SOURCE, rp, fallback_location="eastus", restore_time=EARLIEST - timedelta(seconds=1)
        )
    with pytest.raises(RestoreRequestError):
        DatabaseSpec.point_in_time_restore(
            SOURCE, rp, fallback_location="eastus", restore_time=EARLIEST + timedelta(hours=2)
        )
    spec = DatabaseSpec.point_in_time_restore(
        SOURCE, rp, fallback_location="eastus", restore_time=EARLIEST + timedelta(minutes=30)
    )
    assert spec.restore_point_in_time == EARLIEST + timedelta(minutes=30)


def test_dropped_backup_restore_copies_record_id_and_size() -> None:
    record = DroppedDatabaseRecord(
        id=f"{SERVER.id}/restorableDroppedDatabases/db-a,133",
        database_name="db-a",
        location="eastus",
        max_size_bytes=2147483648,
    )
    spec = DatabaseSpec.from_dropped_backup(
        record, fallback_location="westus", tags={"key1": "restorableDroppedDatabase"}
    )

    assert spec.create_mode is CreateMode.RESTORE
    assert spec.source_resource_id == record.id
    assert spec.max_size_bytes == 2147483648
    assert spec.tags == {"key1": "restorableDroppedDatabase"}
    assert spec.location == "eastus"


def test_restore_modes_require_source() -> None:
    with pytest.raises(RestoreRequestError):
        DatabaseSpec(location="eastus", create_mode=CreateMode.RESTORE)


def test_point_in_time_mode_requires_time() -> None:
    with pytest.raises(ValidationException):
        DatabaseSpec(
            location="eastus",
            create_mode=CreateMode.POINT_IN_TIME_RESTORE,
            source_resource_id=SOURCE.id,
        )


def test_default_mode_needs_nothing_else() -> None:
    spec = DatabaseSpec(location="eastus")
    assert spec.create_mode is CreateMode.DEFAULT
    assert spec.source_resource_id is None


def test_restore_point_window_is_open_ended_without_latest() -> None:
    rp = RestorePoint(database_id="x", earliest_restore_date=EARLIEST)
    assert rp.covers(EARLIEST)
    assert rp.covers(EARLIEST + timedelta(days=3))
    assert not rp.covers(EARLIEST - timedelta(microseconds=1))
