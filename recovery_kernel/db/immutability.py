"""
ORM-Level Immutability Enforcement.

SQLAlchemy fires mapper events before UPDATE/DELETE reach the database.
The listeners registered here intercept them:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError / TrgidMutationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities:

Entity            | Rule
------------------|-------------------------------------------------------------
LifecycleEvent    | Append-only.  No ORM update, no ORM delete.  Rows are only
                  | removed by the bulk cascade in delete_file_upload().
UnitCanonical     | trgid may never change once the row exists.

Bulk ``delete()`` statements bypass mapper events; the FileUpload cascade
relies on that and is the only sanctioned removal path for events.

Usage:
    register_immutability_listeners()    # idempotent; create_tables() calls it
    unregister_immutability_listeners()  # TESTS ONLY
"""

from sqlalchemy import event, inspect

from recovery_kernel.exceptions import ImmutabilityViolationError, TrgidMutationError
from recovery_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_lifecycle_event_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="LifecycleEvent",
        entity_id=str(target.id),
        reason="Lifecycle events are append-only",
    )


def _check_lifecycle_event_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="LifecycleEvent",
        entity_id=str(target.id),
        reason="Lifecycle events are removed only with their file upload",
    )


def _check_unit_trgid_immutability(mapper, connection, target):
    history = inspect(target).attrs.trgid.history
    if history.deleted and history.added and history.deleted[0] != history.added[0]:
        raise TrgidMutationError(history.deleted[0], history.added[0])


def _listeners():
    from recovery_kernel.models.lifecycle_event import LifecycleEvent
    from recovery_kernel.models.unit import UnitCanonical

    return (
        (LifecycleEvent, "before_update", _check_lifecycle_event_update),
        (LifecycleEvent, "before_delete", _check_lifecycle_event_delete),
        (UnitCanonical, "before_update", _check_unit_trgid_immutability),
    )


def register_immutability_listeners() -> None:
    """Register all immutability listeners. Safe to call repeatedly."""
    registered = 0
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)
            registered += 1
    if registered:
        logger.debug("immutability_listeners_registered", extra={"count": registered})


def unregister_immutability_listeners() -> None:
    """Remove immutability listeners. TESTS ONLY."""
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
