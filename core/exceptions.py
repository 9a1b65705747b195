"""
Error taxonomy shared by the inventory and issuance services.

Every LedgerError carries a ``kind`` so API views can report a stable
error code alongside the message.
"""


class LedgerError(Exception):
    """Base class for failures raised by ledger operations."""
    kind = 'ledger'

    def __init__(self, message: str = ''):
        self.message = message
        # set by the issuance ledger so callers can inspect the terminal state
        self.request = None
        super().__init__(message)


class AccessDeniedError(LedgerError, PermissionError):
    """Raised when the acting role may not mutate inventory."""
    kind = 'permission'


class LedgerValidationError(LedgerError, ValueError):
    """Raised when a required field is missing or malformed."""
    kind = 'validation'


class NotFoundError(LedgerValidationError):
    """Raised when an id does not resolve to an existing entity."""
    kind = 'not_found'

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InsufficientStockError(LedgerError):
    """Raised when a decrement would take stock below zero."""
    kind = 'insufficient_stock'

    def __init__(self, item_id, requested: int, available: int):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for item {item_id}: "
            f"requested {requested}, available {available}"
        )


class PersistenceError(LedgerError):
    """Raised when the database fails after validation passed."""
    kind = 'persistence'


class LedgerStateError(LedgerError):
    """Raised on an illegal issuance request transition."""
    kind = 'state'


class OrphanReferenceWarning(UserWarning):
    """A record points at a deleted item or category; sentinel labels are used."""
