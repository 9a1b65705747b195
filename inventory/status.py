"""
Stock status derived from quantity on hand.

Status is recomputed on every read and never stored.
"""
from django.db.models import Q
from django.db import models

from core.exceptions import LedgerValidationError

LOW_STOCK_THRESHOLD = 5


class StockStatus(models.TextChoices):
    IN_STOCK = 'in_stock', 'In Stock'
    LOW_STOCK = 'low_stock', 'Low Stock'
    OUT_OF_STOCK = 'out_of_stock', 'Out of Stock'


def classify(quantity_on_hand: int) -> StockStatus:
    if quantity_on_hand <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity_on_hand < LOW_STOCK_THRESHOLD:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def status_filter(status: str) -> Q:
    """ORM condition selecting items whose derived status equals ``status``."""
    if status == StockStatus.OUT_OF_STOCK:
        return Q(quantity_on_hand=0)
    if status == StockStatus.LOW_STOCK:
        return Q(quantity_on_hand__gt=0, quantity_on_hand__lt=LOW_STOCK_THRESHOLD)
    if status == StockStatus.IN_STOCK:
        return Q(quantity_on_hand__gte=LOW_STOCK_THRESHOLD)
    raise LedgerValidationError(
        f"Unknown status {status!r}; expected one of {StockStatus.values}"
    )
