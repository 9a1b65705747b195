"""
Inventory Models - Core data entities for the uniform store.

Models:
    - Category: Grouping for stock items
    - StockItem: A uniform item with quantity on hand and optional capacity

References to a category are weak: deleting a category leaves items pointing
at a missing row, which display code resolves to "Uncategorized".
"""
import warnings

from django.core.exceptions import ObjectDoesNotExist
from django.db import models
from django.db.models import F, Q

from core.exceptions import OrphanReferenceWarning
from .status import classify

UNCATEGORIZED_LABEL = 'Uncategorized'


class Category(models.Model):
    """
    Category for organizing uniform items.
    """
    name = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Category name"
    )
    color = models.CharField(
        max_length=32,
        blank=True,
        null=True,
        help_text="Optional display color"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'uniform_categories'
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'
        ordering = ['name']

    def __str__(self):
        return self.name


class StockItem(models.Model):
    """
    Stock item with quantity on hand.

    total_quantity is tracked only in catalog mode and bounds
    remaining quantity from above. Status is derived, never stored.
    """
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Item name"
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        db_column='category',
        null=True,
        blank=True,
        related_name='items',
        help_text="Weak reference; may dangle after category deletion"
    )
    quantity_on_hand = models.PositiveIntegerField(
        default=0,
        db_column='remaining_quantity',
        help_text="Units currently available"
    )
    total_quantity = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Catalog capacity (catalog mode only)"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'uniform_items'
        verbose_name = 'Stock Item'
        verbose_name_plural = 'Stock Items'
        ordering = ['name']
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity_on_hand__gte=0),
                name='stock_item_quantity_non_negative'
            ),
            models.CheckConstraint(
                condition=Q(total_quantity__isnull=True) | Q(quantity_on_hand__lte=F('total_quantity')),
                name='stock_item_quantity_within_capacity'
            ),
        ]

    def __str__(self):
        return f"{self.name}: {self.quantity_on_hand} on hand"

    @property
    def status(self):
        return classify(self.quantity_on_hand)

    @property
    def tracks_capacity(self) -> bool:
        return self.total_quantity is not None

    @property
    def category_label(self) -> str:
        """
        Category name, or the sentinel label when unset or deleted.

        Emits OrphanReferenceWarning for a dangling category reference.
        """
        if self.category_id is None:
            return UNCATEGORIZED_LABEL
        try:
            category = self.category
        except ObjectDoesNotExist:
            category = None
        if category is None:
            warnings.warn(
                f"Item #{self.pk} references missing category {self.category_id}",
                OrphanReferenceWarning,
                stacklevel=2,
            )
            return UNCATEGORIZED_LABEL
        return category.name
