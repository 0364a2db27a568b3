"""
Ledger sync state as a tagged variant.

The Customer row stores the state in flat columns (``sync_status``,
``sync_error``, ``sync_attempts``, ``ledger_contact_id``). Services never
write those columns piecemeal: they build one of the variants below and
persist ``to_columns(state)`` in a single UPDATE. A failed attempt is the
exception: its counter is incremented in SQL. ``Customer.apply_sync_state()``
copies a variant onto an instance for callers that save() the row
themselves.

Each variant only carries the payload its status allows, so a ``failed``
state without an error, or a ``synced`` state without a contact, cannot be
built.
"""

from dataclasses import dataclass
from typing import ClassVar, Union


@dataclass(frozen=True)
class Pending:
    """Not yet synced (new customer, after reset, after unlink)."""

    status: ClassVar[str] = "pending"
    contact_id: str | None = None
    attempts: int = 0


@dataclass(frozen=True)
class Syncing:
    """Claimed by a worker; an external call is in flight."""

    status: ClassVar[str] = "syncing"
    contact_id: str | None = None
    attempts: int = 0


@dataclass(frozen=True)
class Synced:
    """Linked to a ledger contact by a successful match, create or push."""

    status: ClassVar[str] = "synced"
    contact_id: str

    def __post_init__(self):
        if not self.contact_id:
            raise ValueError("Synced state requires a contact_id")

    @property
    def attempts(self) -> int:
        return 0


@dataclass(frozen=True)
class Failed:
    """Last attempt failed; the error is kept for the admin."""

    status: ClassVar[str] = "failed"
    error: str
    attempts: int
    contact_id: str | None = None

    def __post_init__(self):
        if not self.error:
            raise ValueError("Failed state requires an error message")
        if self.attempts < 1:
            raise ValueError("Failed state requires at least one attempt")


@dataclass(frozen=True)
class Skipped:
    """Ledger was not connected when a sync would have run."""

    status: ClassVar[str] = "skipped"
    reason: str
    contact_id: str | None = None
    attempts: int = 0


@dataclass(frozen=True)
class Manual:
    """Admin forced a link to a specific ledger contact."""

    status: ClassVar[str] = "manual"
    contact_id: str

    def __post_init__(self):
        if not self.contact_id:
            raise ValueError("Manual state requires a contact_id")

    @property
    def attempts(self) -> int:
        return 0


SyncState = Union[Pending, Syncing, Synced, Failed, Skipped, Manual]


def from_columns(
    status: str,
    error: str | None,
    attempts: int,
    contact_id: str | None,
) -> SyncState:
    """Build the variant stored in a Customer row."""
    if status == Synced.status:
        return Synced(contact_id=contact_id)
    if status == Manual.status:
        return Manual(contact_id=contact_id)
    if status == Failed.status:
        return Failed(error=error, attempts=attempts, contact_id=contact_id)
    if status == Skipped.status:
        return Skipped(reason=error or "", contact_id=contact_id, attempts=attempts)
    if status == Syncing.status:
        return Syncing(contact_id=contact_id, attempts=attempts)
    return Pending(contact_id=contact_id, attempts=attempts)


def to_columns(state: SyncState) -> dict:
    """Flatten a variant into Customer column values."""
    if isinstance(state, Failed):
        error = state.error
    elif isinstance(state, Skipped):
        error = state.reason or None
    else:
        error = None
    return {
        "sync_status": state.status,
        "sync_error": error,
        "sync_attempts": state.attempts,
        "ledger_contact_id": state.contact_id,
    }
