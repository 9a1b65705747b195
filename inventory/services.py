"""
Inventory Service Layer - categories, items and quantity adjustment.

Every mutating operation takes the caller's Session first and checks
the mutate capability before validating input or touching the database.
Quantity changes go through the repository's locked adjust_quantity.
"""
import logging
from typing import Optional

from django.db import DatabaseError, transaction
from django.db.models import Count, Q

from core.access import require_mutate
from core.exceptions import LedgerValidationError, NotFoundError, PersistenceError
from .models import Category, StockItem
from .modes import tracks_issuance
from .repository import stock_items
from .status import LOW_STOCK_THRESHOLD, StockStatus, status_filter

logger = logging.getLogger(__name__)

UPDATABLE_ITEM_FIELDS = ('name', 'category_id', 'quantity_on_hand', 'total_quantity')


def is_non_negative_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def is_positive_int(value) -> bool:
    return is_non_negative_int(value) and value > 0


def clean_name(name, field: str = 'name') -> str:
    if not isinstance(name, str) or not name.strip():
        raise LedgerValidationError(f"{field} must be a non-empty string")
    return name.strip()


# =============================================================================
# Categories
# =============================================================================

def add_category(session, name: str, color: Optional[str] = None) -> Category:
    require_mutate(session, 'add categories')
    name = clean_name(name)

    try:
        category = Category.objects.create(name=name, color=color or None)
    except DatabaseError as exc:
        logger.exception(f"Failed to create category {name!r}: {exc}")
        raise PersistenceError(f"Could not create category {name!r}") from exc

    logger.info(f"Created category #{category.pk} {category.name!r}")
    return category


def delete_category(session, category_id) -> None:
    """
    Remove a category. Items keep their dangling reference and display
    as "Uncategorized".
    """
    require_mutate(session, 'delete categories')
    category = get_category(category_id)

    try:
        with transaction.atomic():
            category.delete()
    except DatabaseError as exc:
        logger.exception(f"Failed to delete category {category_id}: {exc}")
        raise PersistenceError(f"Could not delete category {category_id}") from exc

    logger.info(f"Deleted category #{category_id}")


def get_category(category_id) -> Category:
    try:
        return Category.objects.get(pk=category_id)
    except (Category.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('Category', category_id)


def list_categories():
    return Category.objects.order_by('name')


def clean_category_id(category_id):
    """None, or the id of an existing category."""
    if category_id is None or category_id == '':
        return None
    return get_category(category_id).pk


# =============================================================================
# Items
# =============================================================================

def add_item(session, name: str, category_id=None, initial_quantity: int = 0, mode=None) -> StockItem:
    """
    Create a stock item.

    In catalog mode capacity starts equal to the initial quantity; in
    plain mode capacity is not tracked.

    Raises:
        AccessDeniedError: If the session may not mutate
        LedgerValidationError: If name is empty or quantity is not a
            non-negative integer
    """
    require_mutate(session, 'add items')
    name = clean_name(name)
    if not is_non_negative_int(initial_quantity):
        raise LedgerValidationError("initial_quantity must be a non-negative integer")

    item = StockItem(
        name=name,
        category_id=clean_category_id(category_id),
        quantity_on_hand=initial_quantity,
        total_quantity=initial_quantity if tracks_issuance(mode) else None,
    )
    stock_items.write(item)

    logger.info(
        f"Created item #{item.pk} {item.name!r} with {item.quantity_on_hand} on hand"
    )
    return item


def update_item(session, item_id, **fields) -> StockItem:
    """
    Overwrite item fields directly.

    Accepts name, category_id, quantity_on_hand and total_quantity. The
    quantity invariant is checked against the merged stored and supplied
    values before anything is written.
    """
    require_mutate(session, 'update items')

    unknown = set(fields) - set(UPDATABLE_ITEM_FIELDS)
    if unknown:
        raise LedgerValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    if not fields:
        raise LedgerValidationError("No fields to update")

    if 'name' in fields:
        fields['name'] = clean_name(fields['name'])
    if 'category_id' in fields:
        fields['category_id'] = clean_category_id(fields['category_id'])
    if 'quantity_on_hand' in fields and not is_non_negative_int(fields['quantity_on_hand']):
        raise LedgerValidationError("quantity_on_hand must be a non-negative integer")
    if 'total_quantity' in fields and fields['total_quantity'] is not None \
            and not is_non_negative_int(fields['total_quantity']):
        raise LedgerValidationError("total_quantity must be a non-negative integer")

    with transaction.atomic():
        item = stock_items.read(item_id, for_update=True)

        quantity = fields.get('quantity_on_hand', item.quantity_on_hand)
        capacity = fields.get('total_quantity', item.total_quantity)
        if capacity is not None and quantity > capacity:
            raise LedgerValidationError(
                f"quantity_on_hand ({quantity}) cannot exceed total_quantity ({capacity})"
            )

        for field, value in fields.items():
            setattr(item, field, value)
        stock_items.write(item, update_fields=fields.keys())

    logger.info(f"Updated item #{item.pk}: {', '.join(sorted(fields))}")
    return item


def delete_item(session, item_id) -> None:
    """Remove an item. Issuance records referencing it are left in place."""
    require_mutate(session, 'delete items')
    item = stock_items.read(item_id)
    stock_items.delete(item)
    logger.info(f"Deleted item #{item_id}")


def adjust_quantity(session, item_id, delta: int, grow_capacity: bool = False) -> StockItem:
    """
    Apply a signed quantity change to one item.

    Raises:
        AccessDeniedError: If the session may not mutate
        LedgerValidationError: If delta is zero or not an integer
        InsufficientStockError: If the result would be negative
    """
    require_mutate(session, 'adjust stock')
    if not isinstance(delta, int) or isinstance(delta, bool):
        raise LedgerValidationError("delta must be an integer")
    if delta == 0:
        raise LedgerValidationError("delta must not be zero")
    return stock_items.adjust_quantity(item_id, delta, grow_capacity=grow_capacity)


def get_item(item_id) -> StockItem:
    return stock_items.read(item_id)


def list_items(search: Optional[str] = None, status: Optional[str] = None, category_id=None):
    """
    List items, optionally filtered by name substring, derived status
    and category.
    """
    queryset = StockItem.objects.all()

    if search:
        queryset = queryset.filter(name__icontains=search.strip())
    if status:
        queryset = queryset.filter(status_filter(status))
    if category_id:
        queryset = queryset.filter(category_id=category_id)

    return queryset.order_by('name')


def stock_summary() -> dict:
    """Item count per derived status."""
    counts = StockItem.objects.aggregate(
        total_items=Count('id'),
        in_stock=Count('id', filter=Q(quantity_on_hand__gte=LOW_STOCK_THRESHOLD)),
        low_stock=Count('id', filter=Q(quantity_on_hand__gt=0, quantity_on_hand__lt=LOW_STOCK_THRESHOLD)),
        out_of_stock=Count('id', filter=Q(quantity_on_hand=0)),
    )
    return {
        'total_items': counts['total_items'],
        StockStatus.IN_STOCK.value: counts['in_stock'],
        StockStatus.LOW_STOCK.value: counts['low_stock'],
        StockStatus.OUT_OF_STOCK.value: counts['out_of_stock'],
    }
