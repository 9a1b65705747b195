"""
Ledger operating modes.

Both modes share one code path; the mode only decides whether capacity is
tracked and whether an issuance writes a recipient record.
"""
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import models


class LedgerMode(models.TextChoices):
    CATALOG = 'catalog', 'Catalog issuance'
    PLAIN = 'plain', 'Plain stock'


def resolve_mode(mode=None) -> LedgerMode:
    """Return the explicit mode, or the configured INVENTORY_LEDGER_MODE."""
    value = mode if mode is not None else getattr(settings, 'INVENTORY_LEDGER_MODE', LedgerMode.CATALOG)
    try:
        return LedgerMode(value)
    except ValueError:
        raise ImproperlyConfigured(
            f"Unknown ledger mode {value!r}; expected one of {LedgerMode.values}"
        )


def tracks_issuance(mode=None) -> bool:
    return resolve_mode(mode) == LedgerMode.CATALOG
