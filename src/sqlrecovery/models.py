from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

from sqlrecovery.core.exceptions import RestoreRequestError


class CreateMode(str, Enum):
    DEFAULT = "Default"
    POINT_IN_TIME_RESTORE = "PointInTimeRestore"
    # Service value for restoring a restorable dropped database.
    RESTORE = "Restore"


@dataclass(frozen=True)
class SubscriptionRef:
    subscription_id: str
    display_name: str | None = None


@dataclass(frozen=True)
class ResourceGroupHandle:
    id: str
    name: str
    location: str


@dataclass(frozen=True)
class ServerHandle:
    id: str
    name: str
    location: str
    resource_group: str
    administrator_login: str | None = None


@dataclass(frozen=True)
class DatabaseHandle:
    id: str
    name: str
    server: ServerHandle
    location: str
    create_mode: CreateMode = CreateMode.DEFAULT
    source_resource_id: str | None = None
    restore_point_in_time: datetime | None = None
    max_size_bytes: int | None = None
    tags: dict[str, str] = field(default_factory=dict)


ResourceHandle = ResourceGroupHandle | ServerHandle | DatabaseHandle


@dataclass(frozen=True)
class RestorePoint:
    database_id: str
    earliest_restore_date: datetime
    location: str | None = None
    latest_restore_date: datetime | None = None
    restore_point_type: str | None = None

    def covers(self, when: datetime) -> bool:
        if when < self.earliest_restore_date:
            return False
        return self.latest_restore_date is None or when <= self.latest_restore_date


@dataclass(frozen=True)
class DroppedDatabaseRecord:
    id: str
    database_name: str
    location: str | None = None
    max_size_bytes: int | None = None
    deletion_date: datetime | None = None
    earliest_restore_date: datetime | None = None


class ServerSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    location: str
    administrator_login: str = Field(min_length=1)
    administrator_login_password: SecretStr
    version: str = "12.0"
    tags: dict[str, str] = Field(default_factory=dict)


class DatabaseSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    location: str
    create_mode: CreateMode = CreateMode.DEFAULT
    source_resource_id: str | None = None
    restore_point_in_time: datetime | None = None
    max_size_bytes: int | None = Field(default=None, ge=0)
    tags: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_restore_fields(self) -> DatabaseSpec:
        if self.create_mode is CreateMode.DEFAULT:
            return self
        if not self.source_resource_id:
            raise RestoreRequestError(
                f"create mode {self.create_mode.value} requires source_resource_id",
                details={"create_mode": self.create_mode.value},
            )
        if (
            self.create_mode is CreateMode.POINT_IN_TIME_RESTORE
            and self.restore_point_in_time is None
        ):
            raise RestoreRequestError(
                "create mode PointInTimeRestore requires restore_point_in_time",
                details={"source_resource_id": self.source_resource_id},
            )
        return self

    @classmethod
    def point_in_time_restore(
        cls,
        source: DatabaseHandle,
        restore_point: RestorePoint,
        *,
        fallback_location: str,
        restore_time: datetime | None = None,
    ) -> DatabaseSpec:
        when = restore_time or restore_point.earliest_restore_date
        if not restore_point.covers(when):
            raise RestoreRequestError(
                "restore time falls outside the restore point window",
                details={
                    "restore_point_in_time": when.isoformat(),
                    "earliest": restore_point.earliest_restore_date.isoformat(),
                    "latest": restore_point.latest_restore_date.isoformat()
                    if restore_point.latest_restore_date
                    else None,
                },
            )
        return cls(
            location=restore_point.location or fallback_location,
            create_mode=CreateMode.POINT_IN_TIME_RESTORE,
            source_resource_id=source.id,
            restore_point_in_time=when,
        )

    @classmethod
    def from_dropped_backup(
        cls,
        record: DroppedDatabaseRecord,
        *,
        fallback_location: str,
        tags: dict[str, str] | None = None,
    ) -> DatabaseSpec:
        return cls(
            location=record.location or fallback_location,
            create_mode=CreateMode.RESTORE,
            source_resource_id=record.id,
            max_size_bytes=record.max_size_bytes,
            tags=dict(tags or {}),
        )
