"""
Celery tasks for issuance processing.

Tasks:
    - send_issuance_notice: Async receipt after an issuance commits
    - generate_daily_issuance_report: Yesterday's issuance totals
"""
import logging
from datetime import timedelta

from celery import shared_task
from django.db.models import Count, Sum
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def send_issuance_notice(self, record_id: int):
    """
    Log a receipt for a committed issuance.

    Records whose item has since been deleted are skipped.

    Args:
        record_id: ID of the committed IssuanceRecord

    Returns:
        Dict with the outcome
    """
    from issuance.models import IssuanceRecord

    try:
        record = IssuanceRecord.objects.select_related('item__category').get(id=record_id)
    except IssuanceRecord.DoesNotExist:
        logger.error(f"Issuance record #{record_id} not found for notice")
        return {'status': 'error', 'message': f'Record {record_id} not found'}

    item = record.resolved_item
    if item is None:
        logger.warning(
            f"Issuance record #{record_id} references a deleted item, skipping notice"
        )
        return {'status': 'skipped', 'message': f'Record {record_id} is orphaned'}

    receipt = f"""
    ===============================================
    ISSUANCE RECEIPT - #{record.id}
    ===============================================
    Recipient: {record.recipient_name}
    Item: {item.name} ({item.category_label})
    Quantity: {record.quantity}
    Issue date: {record.issue_date.isoformat()}
    Remaining stock: {item.quantity_on_hand}
    ===============================================
    """
    logger.info(receipt)

    return {
        'status': 'success',
        'record_id': record.id,
        'message': f'Notice sent for issuance {record_id}'
    }


@shared_task
def generate_daily_issuance_report():
    """
    Summarize yesterday's issuances.

    Scheduled via Celery Beat (see CELERY_BEAT_SCHEDULE).
    """
    from issuance.models import IssuanceRecord

    yesterday = timezone.localdate() - timedelta(days=1)
    records = IssuanceRecord.objects.filter(issue_date=yesterday)

    stats = records.aggregate(
        total_issuances=Count('id'),
        units_issued=Sum('quantity'),
        recipients=Count('recipient_name', distinct=True),
    )
    stats['units_issued'] = stats['units_issued'] or 0

    report = f"""
    ===============================================
    DAILY ISSUANCE REPORT - {yesterday}
    ===============================================
    Issuances: {stats['total_issuances']}
    Units issued: {stats['units_issued']}
    Recipients: {stats['recipients']}
    ===============================================
    """
    logger.info(report)

    stats['date'] = yesterday.isoformat()
    return stats
