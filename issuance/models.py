"""
Issuance Models - records of stock handed to recipients.

Issuance Request Flow:
    DRAFT -> VALIDATING -> APPLYING -> COMMITTED
    VALIDATING -> REJECTED (permission, validation or insufficient stock)
    APPLYING -> REJECTED (stock taken by a concurrent issuance)
    VALIDATING/APPLYING -> FAILED (persistence failure, nothing written)
    DRAFT/VALIDATING -> CANCELLED (abandoned by the caller)
"""
import warnings

from django.core.exceptions import ObjectDoesNotExist
from django.core.validators import MinValueValidator
from django.db import models

from core.exceptions import OrphanReferenceWarning
from inventory.models import UNCATEGORIZED_LABEL, StockItem

DELETED_ITEM_LABEL = 'Deleted Item'


class IssuanceState(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    VALIDATING = 'validating', 'Validating'
    APPLYING = 'applying', 'Applying'
    COMMITTED = 'committed', 'Committed'
    REJECTED = 'rejected', 'Rejected'
    FAILED = 'failed', 'Failed'
    CANCELLED = 'cancelled', 'Cancelled'


class IssuanceRecord(models.Model):
    """
    One issuance of an item to a recipient.

    The item reference is weak: deleting the item leaves the record in
    place and its labels fall back to "Deleted Item" / "Uncategorized".
    """
    item = models.ForeignKey(
        StockItem,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        db_column='uniform_id',
        null=True,
        related_name='issuances',
        help_text="Issued item; may dangle after item deletion"
    )
    recipient_name = models.CharField(
        max_length=200,
        db_column='student_name',
        db_index=True,
        help_text="Person who received the items"
    )
    quantity = models.PositiveIntegerField(
        db_column='quantity_taken',
        validators=[MinValueValidator(1)],
        help_text="Units issued"
    )
    issue_date = models.DateField(help_text="Date the items were handed over")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'uniform_issuances'
        verbose_name = 'Issuance Record'
        verbose_name_plural = 'Issuance Records'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name='issuance_quantity_positive'
            ),
        ]

    def __str__(self):
        return f"{self.quantity}x item {self.item_id} to {self.recipient_name}"

    @property
    def resolved_item(self):
        """The referenced item, or None when it has been deleted."""
        if self.item_id is None:
            return None
        try:
            return self.item
        except ObjectDoesNotExist:
            return None

    @property
    def labels(self):
        """
        (item_name, category_name) for display.

        Emits OrphanReferenceWarning when the item is gone.
        """
        item = self.resolved_item
        if item is None:
            warnings.warn(
                f"Issuance #{self.pk} references missing item {self.item_id}",
                OrphanReferenceWarning,
                stacklevel=2,
            )
            return DELETED_ITEM_LABEL, UNCATEGORIZED_LABEL
        return item.name, item.category_label
