"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Once a payment enters the approval pipeline the facts behind it must not
change silently.  This module intercepts UPDATE/DELETE flushes through
SQLAlchemy mapper events and refuses the ones that would rewrite history:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                | When Immutable                       | Scope
----------------------|--------------------------------------|-------------------------------
PaymentHistoryEntry   | ALWAYS (from creation)               | UPDATE always, DELETE except
                      |                                      | during a draft purge
PaymentLineItem       | After snapshot_captured_at is set    | Snapshot + calculated columns,
                      |                                      | DELETE
Payment               | After status = PAID or CANCELLED     | Every column, DELETE
                      | (DELETE: any non-DRAFT status)       |

===============================================================================
DESIGN DECISIONS
===============================================================================

1. updated_at / updated_by are audit metadata and may always change.

2. "WAS TERMINAL" NOT "IS TERMINAL": the transition into PAID/CANCELLED and
   the capture of a snapshot are themselves updates.  Attribute history
   tells the transition apart from a later modification.

3. Only column attributes are inspected.  Appending a history entry or a
   document to a paid payment touches the child table, not the payment row.

4. The draft purge is signalled through ``session.info[PURGE_SESSION_KEY]``
   holding the id of the payment being deleted; PaymentService.delete_draft
   sets it and clears it in a ``finally`` block.

===============================================================================
USAGE
===============================================================================

Called once at application startup, after the models are imported:

    from payroll_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import object_session
from sqlalchemy.orm.attributes import get_history

from payroll_kernel.exceptions import ImmutabilityViolationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

PURGE_SESSION_KEY = "purging_draft_payment"

_AUDIT_METADATA_COLUMNS = frozenset({"updated_at", "updated_by"})
_TERMINAL_STATUS_VALUES = frozenset({"paid", "cancelled"})


def _changed_columns(target) -> list[str]:
    """Column attributes with pending changes, excluding audit metadata."""
    insp = inspect(target)
    changed = []
    for column_attr in insp.mapper.column_attrs:
        key = column_attr.key
        if key in _AUDIT_METADATA_COLUMNS:
            continue
        if insp.attrs[key].history.has_changes():
            changed.append(key)
    return changed


def _value_before_flush(target, key: str):
    """Value of ``key`` as loaded from the database, before pending changes."""
    hist = get_history(target, key)
    if hist.deleted:
        return hist.deleted[0]
    if hist.unchanged:
        return hist.unchanged[0]
    return None


def _status_value(status) -> str | None:
    return getattr(status, "value", status)


def _block(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    extra = {
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "operation": operation,
    }
    if field is not None:
        extra["field"] = field
    logger.error("immutability_violation_blocked", extra=extra)
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_history_entry_immutability(mapper, connection, target):
    """History entries are append-only: every UPDATE is refused."""
    changed = _changed_columns(target)
    if changed:
        _block(
            "PaymentHistoryEntry",
            target.id,
            "UPDATE",
            "Payment history entries are immutable",
            field=changed[0],
        )


def _check_history_entry_delete(mapper, connection, target):
    """History entries may only disappear with the draft payment they belong to."""
    session = object_session(target)
    purging = session.info.get(PURGE_SESSION_KEY) if session is not None else None
    if purging is not None and purging == target.payment_id:
        return
    _block(
        "PaymentHistoryEntry",
        target.id,
        "DELETE",
        "Payment history entries cannot be deleted",
    )


def _check_line_item_immutability(mapper, connection, target):
    """
    Freeze snapshot and calculated columns once a snapshot is captured.

    The capture itself (snapshot_captured_at None -> value) is allowed.
    """
    from payroll_kernel.domain.snapshot import CALCULATED_COLUMNS, SNAPSHOT_COLUMNS

    if _value_before_flush(target, "snapshot_captured_at") is None:
        return

    frozen = set(SNAPSHOT_COLUMNS) | set(CALCULATED_COLUMNS)
    for key in _changed_columns(target):
        if key in frozen:
            _block(
                "PaymentLineItem",
                target.id,
                "UPDATE",
                f"Cannot modify field '{key}' on a line item with a captured snapshot",
                field=key,
            )


def _check_line_item_delete(mapper, connection, target):
    if target.snapshot_captured_at is not None:
        _block(
            "PaymentLineItem",
            target.id,
            "DELETE",
            "Line items with a captured snapshot cannot be deleted",
        )


def _check_payment_immutability(mapper, connection, target):
    """Block all column changes on a payment that was PAID or CANCELLED."""
    previous = _status_value(_value_before_flush(target, "status"))
    if previous not in _TERMINAL_STATUS_VALUES:
        return

    changed = _changed_columns(target)
    if changed:
        _block(
            "Payment",
            target.id,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on a {previous} payment",
            field=changed[0],
        )


def _check_payment_delete(mapper, connection, target):
    status = _status_value(_value_before_flush(target, "status"))
    if status != "draft":
        _block(
            "Payment",
            target.id,
            "DELETE",
            f"Only draft payments can be deleted (status: {status})",
        )


def _listeners():
    from payroll_kernel.models.payment import Payment, PaymentLineItem
    from payroll_kernel.models.payment_history import PaymentHistoryEntry

    return (
        (PaymentHistoryEntry, "before_update", _check_history_entry_immutability),
        (PaymentHistoryEntry, "before_delete", _check_history_entry_delete),
        (PaymentLineItem, "before_update", _check_line_item_immutability),
        (PaymentLineItem, "before_delete", _check_line_item_delete),
        (Payment, "before_update", _check_payment_immutability),
        (Payment, "before_delete", _check_payment_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call this after all models are imported but before any database
    operations begin.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to bypass the rules.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
