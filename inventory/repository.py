"""
Stock item repository.

The only code that writes quantity_on_hand and total_quantity. Every write
returns the updated entity, and database failures surface as
PersistenceError rather than driver exceptions.
"""
import logging

from django.db import DatabaseError, transaction

from core.exceptions import (
    InsufficientStockError,
    LedgerValidationError,
    NotFoundError,
    PersistenceError,
)
from .models import StockItem

logger = logging.getLogger(__name__)


class StockItemRepository:
    """read / write / adjust_quantity over the StockItem table."""

    def read(self, item_id, for_update: bool = False) -> StockItem:
        """
        Fetch a single item.

        Raises:
            NotFoundError: If no item has this id
        """
        queryset = StockItem.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=item_id)
        except (StockItem.DoesNotExist, ValueError, TypeError):
            raise NotFoundError('Item', item_id)

    def write(self, item: StockItem, update_fields=None) -> StockItem:
        try:
            with transaction.atomic():
                if update_fields is not None:
                    update_fields = list(update_fields) + ['updated_at']
                item.save(update_fields=update_fields)
        except DatabaseError as exc:
            logger.exception(f"Failed to save item {item.pk}: {exc}")
            raise PersistenceError(f"Could not save item {item.pk}") from exc
        return item

    def delete(self, item: StockItem) -> None:
        try:
            with transaction.atomic():
                item.delete()
        except DatabaseError as exc:
            logger.exception(f"Failed to delete item {item.pk}: {exc}")
            raise PersistenceError(f"Could not delete item {item.pk}") from exc

    def adjust_quantity(self, item_id, delta: int, grow_capacity: bool = False) -> StockItem:
        """
        Atomically apply ``delta`` to an item's quantity on hand.

        The row is locked for the read-modify-write. With ``grow_capacity``
        a tracked total_quantity moves by the same delta.

        Raises:
            NotFoundError: If the item does not exist
            InsufficientStockError: If the result would be negative
            LedgerValidationError: If the result would exceed a tracked
                total_quantity
            PersistenceError: If the write fails
        """
        with transaction.atomic():
            item = self.read(item_id, for_update=True)
            new_quantity = item.quantity_on_hand + delta
            if new_quantity < 0:
                raise InsufficientStockError(item.pk, -delta, item.quantity_on_hand)

            fields = ['quantity_on_hand']
            if grow_capacity and item.tracks_capacity:
                item.total_quantity += delta
                fields.append('total_quantity')
            if item.tracks_capacity and new_quantity > item.total_quantity:
                raise LedgerValidationError(
                    f"quantity_on_hand ({new_quantity}) cannot exceed "
                    f"total_quantity ({item.total_quantity}) for item {item.pk}"
                )

            item.quantity_on_hand = new_quantity
            self.write(item, update_fields=fields)

        logger.debug(
            f"Adjusted item {item.pk} by {delta:+d}, "
            f"on hand: {item.quantity_on_hand}"
        )
        return item


stock_items = StockItemRepository()
