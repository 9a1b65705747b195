"""
Celery tasks for stock monitoring.
"""
import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def report_low_stock():
    """Log every item that is low or out of stock."""
    from inventory.services import list_items
    from inventory.status import StockStatus

    flagged = {}
    for status in (StockStatus.OUT_OF_STOCK, StockStatus.LOW_STOCK):
        names = [f"{item.name} ({item.quantity_on_hand})" for item in list_items(status=status)]
        flagged[status.value] = names
        if names:
            logger.warning(f"{status.label}: {', '.join(names)}")

    if not any(flagged.values()):
        logger.info("All items in stock")
    return flagged
