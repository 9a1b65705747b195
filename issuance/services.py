"""
Issuance Service Layer - the issue / restock protocol.

An issuance runs as a small state machine:
1. VALIDATING: permission, required fields, item existence, stock on hand
2. APPLYING: decrement stock and write the record in one transaction
3. COMMITTED: the record (catalog mode) is returned on the request

Validation failures end in REJECTED with nothing written. A database failure
while applying ends in FAILED and the transaction rolls the decrement back,
so there is never a partial issuance. Nothing is retried automatically.
"""
import datetime
import logging
from typing import Optional

from django.db import DatabaseError, transaction
from django.utils import timezone

from core.access import require_mutate
from core.exceptions import (
    InsufficientStockError,
    LedgerError,
    LedgerStateError,
    LedgerValidationError,
    NotFoundError,
    PersistenceError,
)
from inventory import services as inventory_services
from inventory.modes import resolve_mode, tracks_issuance
from inventory.services import clean_name, is_positive_int
from .models import IssuanceRecord, IssuanceState

logger = logging.getLogger(__name__)

CORRECTABLE_FIELDS = ('recipient_name', 'quantity', 'issue_date')

TRANSITIONS = {
    IssuanceState.DRAFT: {IssuanceState.VALIDATING, IssuanceState.CANCELLED},
    IssuanceState.VALIDATING: {
        IssuanceState.APPLYING,
        IssuanceState.REJECTED,
        IssuanceState.FAILED,
        IssuanceState.CANCELLED,
    },
    IssuanceState.APPLYING: {
        IssuanceState.COMMITTED,
        IssuanceState.REJECTED,
        IssuanceState.FAILED,
    },
}


def clean_issue_date(value) -> datetime.date:
    """Accept a date, an ISO 'YYYY-MM-DD' string, or None for today."""
    if value is None or value == '':
        return timezone.localdate()
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise LedgerValidationError(f"issue_date {value!r} is not a valid date")


class IssuanceRequest:
    """
    A single pending issuance.

    Build it as a draft, then ``submit`` it with the caller's session. A
    draft may be cancelled; once applying has begun it cannot be.
    """

    def __init__(self, item_id, recipient_name, quantity, issue_date=None, mode=None):
        self.item_id = item_id
        self.recipient_name = recipient_name
        self.quantity = quantity
        self.issue_date = issue_date
        self.mode = resolve_mode(mode)
        self.state = IssuanceState.DRAFT
        self.error: Optional[LedgerError] = None
        self.item = None
        self.record: Optional[IssuanceRecord] = None

    def __repr__(self):
        return (
            f"<IssuanceRequest item={self.item_id} qty={self.quantity} "
            f"state={self.state.value}>"
        )

    @property
    def is_terminal(self) -> bool:
        return self.state not in TRANSITIONS

    def _transition(self, state: IssuanceState) -> None:
        if state not in TRANSITIONS.get(self.state, ()):
            raise LedgerStateError(
                f"Cannot move issuance request from {self.state.value} to {state.value}"
            )
        self.state = state

    def cancel(self) -> None:
        self._transition(IssuanceState.CANCELLED)
        logger.info(f"Issuance request for item {self.item_id} cancelled")

    def submit(self, session) -> 'IssuanceRequest':
        """
        Validate and apply the issuance.

        Returns:
            This request in the COMMITTED state

        Raises:
            AccessDeniedError, LedgerValidationError, InsufficientStockError:
                The request is REJECTED; nothing was written
            PersistenceError: The request is FAILED; the item read or the
                write failed and any decrement was rolled back
        """
        self._transition(IssuanceState.VALIDATING)
        try:
            self._validate(session)
        except PersistenceError as exc:
            self._finish_with_error(IssuanceState.FAILED, exc)
            logger.error(f"Issuance failed for item {self.item_id}: {exc}")
            raise
        except LedgerError as exc:
            self._finish_with_error(IssuanceState.REJECTED, exc)
            logger.warning(f"Issuance rejected for item {self.item_id}: {exc}")
            raise

        self._transition(IssuanceState.APPLYING)
        try:
            self._apply(session)
        except InsufficientStockError as exc:
            # stock moved between validation and the locked decrement
            self._finish_with_error(IssuanceState.REJECTED, exc)
            logger.warning(f"Issuance rejected for item {self.item_id}: {exc}")
            raise
        except LedgerError as exc:
            self._finish_with_error(IssuanceState.FAILED, exc)
            logger.error(f"Issuance failed for item {self.item_id}: {exc}")
            raise

        self._transition(IssuanceState.COMMITTED)
        if self.record is not None:
            record_id = self.record.pk
            transaction.on_commit(lambda: queue_issuance_notice(record_id))
            logger.info(
                f"Issued {self.quantity}x {self.item.name!r} to {self.recipient_name!r} "
                f"(record #{record_id}), remaining: {self.item.quantity_on_hand}"
            )
        else:
            logger.info(
                f"Issued {self.quantity}x {self.item.name!r}, "
                f"remaining: {self.item.quantity_on_hand}"
            )
        return self

    def _finish_with_error(self, state: IssuanceState, exc: LedgerError) -> None:
        self._transition(state)
        self.error = exc
        exc.request = self

    def _validate(self, session) -> None:
        require_mutate(session, 'issue stock')

        if tracks_issuance(self.mode):
            self.recipient_name = clean_name(self.recipient_name, 'recipient_name')
        elif isinstance(self.recipient_name, str):
            self.recipient_name = self.recipient_name.strip()
        if not is_positive_int(self.quantity):
            raise LedgerValidationError("quantity must be a positive integer")
        self.issue_date = clean_issue_date(self.issue_date)

        try:
            item = inventory_services.get_item(self.item_id)
        except DatabaseError as exc:
            logger.exception(f"Database error while reading item {self.item_id}: {exc}")
            raise PersistenceError(f"Could not read item {self.item_id}") from exc
        if self.quantity > item.quantity_on_hand:
            raise InsufficientStockError(item.pk, self.quantity, item.quantity_on_hand)
        self.item = item

    def _apply(self, session) -> None:
        try:
            with transaction.atomic():
                self.item = inventory_services.adjust_quantity(
                    session, self.item_id, -self.quantity
                )
                if tracks_issuance(self.mode):
                    self.record = IssuanceRecord.objects.create(
                        item=self.item,
                        recipient_name=self.recipient_name,
                        quantity=self.quantity,
                        issue_date=self.issue_date,
                    )
        except DatabaseError as exc:
            logger.exception(f"Database error while issuing item {self.item_id}: {exc}")
            self.item = None
            self.record = None
            raise PersistenceError(
                f"Could not record issuance of item {self.item_id}; no stock was deducted"
            ) from exc


def queue_issuance_notice(record_id) -> None:
    """Queue the post-commit notice; a queueing failure never fails the issuance."""
    try:
        from .tasks import send_issuance_notice
        send_issuance_notice.delay(record_id)
        logger.debug(f"Queued issuance notice for record #{record_id}")
    except Exception as e:
        logger.error(f"Failed to queue issuance notice for record #{record_id}: {e}")


def issue(session, item_id, recipient_name, quantity, issue_date=None, mode=None) -> IssuanceRequest:
    """
    Issue ``quantity`` units of an item to a recipient.

    Returns the committed IssuanceRequest; ``request.record`` holds the new
    IssuanceRecord in catalog mode and is None in plain mode.
    """
    request = IssuanceRequest(item_id, recipient_name, quantity, issue_date, mode=mode)
    return request.submit(session)


def restock(session, item_id, quantity, mode=None):
    """
    Add ``quantity`` units to an item. No record is written and there is
    no upper bound.

    An item that tracks capacity has its total_quantity grown by the same
    amount in either mode; items without tracked capacity are unaffected.
    """
    require_mutate(session, 'restock items')
    if not is_positive_int(quantity):
        raise LedgerValidationError("quantity must be a positive integer")
    mode = resolve_mode(mode)

    item = inventory_services.adjust_quantity(session, item_id, quantity, grow_capacity=True)
    logger.info(
        f"Restocked item #{item.pk} by {quantity} ({mode.value} mode), "
        f"on hand: {item.quantity_on_hand}"
    )
    return item


# =============================================================================
# Record corrections
# =============================================================================

def get_record(record_id) -> IssuanceRecord:
    try:
        return IssuanceRecord.objects.get(pk=record_id)
    except (IssuanceRecord.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('Issuance record', record_id)


def correct_record(session, record_id, **fields) -> IssuanceRecord:
    """
    Edit recipient, quantity or date of a past issuance.

    Item stock is deliberately left alone: history edits never recompute
    live quantities.
    """
    require_mutate(session, 'correct issuance records')

    unknown = set(fields) - set(CORRECTABLE_FIELDS)
    if unknown:
        raise LedgerValidationError(f"Cannot correct fields: {', '.join(sorted(unknown))}")
    if not fields:
        raise LedgerValidationError("No fields to correct")

    if 'recipient_name' in fields:
        fields['recipient_name'] = clean_name(fields['recipient_name'], 'recipient_name')
    if 'quantity' in fields and not is_positive_int(fields['quantity']):
        raise LedgerValidationError("quantity must be a positive integer")
    if 'issue_date' in fields:
        if fields['issue_date'] is None:
            raise LedgerValidationError("issue_date is required")
        fields['issue_date'] = clean_issue_date(fields['issue_date'])

    record = get_record(record_id)
    for field, value in fields.items():
        setattr(record, field, value)

    try:
        with transaction.atomic():
            record.save(update_fields=list(fields))
    except DatabaseError as exc:
        logger.exception(f"Failed to correct record #{record_id}: {exc}")
        raise PersistenceError(f"Could not correct issuance record {record_id}") from exc

    logger.info(f"Corrected issuance record #{record.pk}: {', '.join(sorted(fields))}")
    return record


def delete_record(session, record_id) -> None:
    """Remove an issuance record without touching item stock."""
    require_mutate(session, 'delete issuance records')
    record = get_record(record_id)

    try:
        with transaction.atomic():
            record.delete()
    except DatabaseError as exc:
        logger.exception(f"Failed to delete record #{record_id}: {exc}")
        raise PersistenceError(f"Could not delete issuance record {record_id}") from exc

    logger.info(f"Deleted issuance record #{record_id}")


# =============================================================================
# Reads
# =============================================================================

def list_records(recipient: Optional[str] = None, item_id=None):
    """Issuance records, newest first."""
    queryset = IssuanceRecord.objects.select_related('item__category')

    if recipient:
        queryset = queryset.filter(recipient_name__icontains=recipient.strip())
    if item_id:
        queryset = queryset.filter(item_id=item_id)

    return queryset.order_by('-created_at', '-id')


def record_labels(record: IssuanceRecord) -> tuple:
    """(item_name, category_name), with "Deleted Item" / "Uncategorized" fallbacks."""
    return record.labels


def recent_movements(limit: int = 10) -> list:
    """The latest issuances as a movement feed."""
    movements = []
    for record in list_records()[:limit]:
        item_name, _ = record_labels(record)
        movements.append({
            'id': record.pk,
            'item_name': item_name,
            'movement_type': 'issued',
            'quantity': record.quantity,
            'created_at': record.created_at,
            'recipient_name': record.recipient_name,
        })
    return movements
