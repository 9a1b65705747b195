"""
Shared view helpers: translating ledger errors into API responses.
"""
import logging

from rest_framework import status
from rest_framework.response import Response

from .access import session_from_request
from .exceptions import (
    AccessDeniedError,
    InsufficientStockError,
    LedgerError,
    LedgerStateError,
    LedgerValidationError,
    NotFoundError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = [
    (AccessDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (LedgerValidationError, status.HTTP_400_BAD_REQUEST),
    (InsufficientStockError, status.HTTP_409_CONFLICT),
    (LedgerStateError, status.HTTP_409_CONFLICT),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def ledger_error_response(exc: LedgerError) -> Response:
    """Map a LedgerError to ``{"error": kind, "detail": message}``."""
    for error_class, status_code in ERROR_STATUS:
        if isinstance(exc, error_class):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return Response(
        {'error': exc.kind, 'detail': str(exc)},
        status=status_code
    )


class LedgerViewMixin:
    """
    Mixin for views that call ledger services.

    Provides the caller's Session and converts LedgerError into a response
    instead of a 500.
    """

    def get_session(self):
        return session_from_request(self.request)

    def handle_exception(self, exc):
        if isinstance(exc, LedgerError):
            if isinstance(exc, PersistenceError):
                logger.error(f"Persistence failure in {self.__class__.__name__}: {exc}")
            return ledger_error_response(exc)
        return super().handle_exception(exc)
