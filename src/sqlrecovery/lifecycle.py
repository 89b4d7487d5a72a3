from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from sqlrecovery.core.exceptions import InvalidTransitionError
from sqlrecovery.core.logging import get_logger

logger = get_logger(__name__)


class DatabaseState(Enum):
    NON_EXISTENT = "non_existent"
    CREATING = "creating"
    AVAILABLE = "available"
    RESTORE_POINT_KNOWN = "restore_point_known"
    DELETING = "deleting"
    DELETED = "deleted"
    DROPPED_BACKUP_AVAILABLE = "dropped_backup_available"


_TRANSITIONS: frozenset[tuple[DatabaseState, DatabaseState]] = frozenset(
    {
        (DatabaseState.NON_EXISTENT, DatabaseState.CREATING),
        (DatabaseState.CREATING, DatabaseState.AVAILABLE),
        (DatabaseState.AVAILABLE, DatabaseState.RESTORE_POINT_KNOWN),
        (DatabaseState.AVAILABLE, DatabaseState.DELETING),
        (DatabaseState.RESTORE_POINT_KNOWN, DatabaseState.DELETING),
        (DatabaseState.DELETING, DatabaseState.DELETED),
        (DatabaseState.DELETED, DatabaseState.DROPPED_BACKUP_AVAILABLE),
    }
)


class DatabaseLifecycle:
    """Last observed state of each database the runner touched, keyed by name.

    States only advance after the remote call or poll that proves them.
    """

    def __init__(self) -> None:
        self._states: dict[str, DatabaseState] = {}
        self.history: list[tuple[str, DatabaseState, datetime]] = []

    def state(self, name: str) -> DatabaseState:
        return self._states.get(name, DatabaseState.NON_EXISTENT)

    def transition(self, name: str, new_state: DatabaseState) -> None:
        current = self.state(name)
        if (current, new_state) not in _TRANSITIONS:
            raise InvalidTransitionError(
                f"database {name}: {current.value} -> {new_state.value} is not allowed",
                details={"database": name, "from": current.value, "to": new_state.value},
            )
        self._states[name] = new_state
        self.history.append((name, new_state, datetime.now(UTC)))
        logger.debug("database.state", database=name, state=new_state.value)
