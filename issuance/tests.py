"""
Tests for the issue / restock protocol.

Test Cases:
1. Issue with sufficient stock decrements and records
2. Issue rejected with insufficient or no stock
3. No stock change on rejection or persistence failure
4. Restock grows quantity and catalog capacity
5. History survives item deletion with sentinel labels
6. Record corrections never touch stock
7. Concurrent issues cannot oversell
"""
import datetime
import threading
from unittest.mock import patch

from django.contrib.auth.models import Group, User
from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from core.access import Session
from core.exceptions import (
    AccessDeniedError,
    InsufficientStockError,
    LedgerError,
    LedgerStateError,
    LedgerValidationError,
    NotFoundError,
    OrphanReferenceWarning,
    PersistenceError,
)
from inventory.models import Category, StockItem
from inventory.status import StockStatus
from issuance import services
from issuance.models import IssuanceRecord, IssuanceState
from issuance.services import IssuanceRequest
from issuance.tasks import generate_daily_issuance_report, send_issuance_notice

KEEPER = Session(role='storekeeper', actor='keeper')
SUPERVISOR = Session(role='supervisor', actor='boss')


class IssueTestCase(TestCase):
    """Issuing in catalog mode."""

    def setUp(self):
        self.category = Category.objects.create(name='Shirts')
        self.item_a = StockItem.objects.create(
            name='White Shirt', category=self.category, quantity_on_hand=10, total_quantity=20
        )
        self.item_b = StockItem.objects.create(name='Blue Shirt', quantity_on_hand=4, total_quantity=4)
        self.item_c = StockItem.objects.create(name='Polo Shirt', quantity_on_hand=0, total_quantity=0)

    def test_issue_with_sufficient_stock(self):
        """
        Given: Item A with 10 on hand and capacity 20
        When: Issuing 3 to "John Doe" on 2024-01-01
        Then: 7 remain and one record is written
        """
        request = services.issue(KEEPER, self.item_a.pk, 'John Doe', 3, '2024-01-01', mode='catalog')

        self.assertEqual(request.state, IssuanceState.COMMITTED)
        self.item_a.refresh_from_db()
        self.assertEqual(self.item_a.quantity_on_hand, 7)
        self.assertEqual(self.item_a.total_quantity, 20)

        record = IssuanceRecord.objects.get()
        self.assertEqual(request.record, record)
        self.assertEqual(record.item_id, self.item_a.pk)
        self.assertEqual(record.recipient_name, 'John Doe')
        self.assertEqual(record.quantity, 3)
        self.assertEqual(record.issue_date, datetime.date(2024, 1, 1))
        self.assertEqual(record.labels, ('White Shirt', 'Shirts'))

    def test_issue_defaults_to_today(self):
        request = services.issue(KEEPER, self.item_a.pk, 'John Doe', 1, mode='catalog')
        self.assertIsNotNone(request.record.issue_date)

    def test_issue_exact_stock(self):
        request = services.issue(KEEPER, self.item_b.pk, 'Jane', 4, mode='catalog')

        self.assertEqual(request.item.quantity_on_hand, 0)
        self.assertEqual(request.item.status, StockStatus.OUT_OF_STOCK)

    def test_issue_with_insufficient_stock(self):
        """
        Given: Item B with 4 on hand (low stock)
        When: Issuing 10 to "Jane"
        Then: InsufficientStockError, 4 remain and no record is written
        """
        self.assertEqual(self.item_b.status, StockStatus.LOW_STOCK)

        with self.assertRaises(InsufficientStockError) as context:
            services.issue(KEEPER, self.item_b.pk, 'Jane', 10, '2024-01-01', mode='catalog')

        self.assertEqual(context.exception.request.state, IssuanceState.REJECTED)
        self.item_b.refresh_from_db()
        self.assertEqual(self.item_b.quantity_on_hand, 4)
        self.assertEqual(IssuanceRecord.objects.count(), 0)

    def test_out_of_stock_rejects_any_quantity(self):
        self.assertEqual(self.item_c.status, StockStatus.OUT_OF_STOCK)

        for quantity in [1, 5, 100]:
            with self.assertRaises(InsufficientStockError):
                services.issue(KEEPER, self.item_c.pk, 'Jane', quantity, mode='catalog')

        self.item_c.refresh_from_db()
        self.assertEqual(self.item_c.quantity_on_hand, 0)
        self.assertEqual(IssuanceRecord.objects.count(), 0)

    def test_validation_errors(self):
        cases = [
            (self.item_a.pk, '', 1, None),
            (self.item_a.pk, '   ', 1, None),
            (self.item_a.pk, 'Jane', 0, None),
            (self.item_a.pk, 'Jane', -2, None),
            (self.item_a.pk, 'Jane', 1.5, None),
            (self.item_a.pk, 'Jane', 1, '01/02/2024'),
        ]
        for item_id, recipient, quantity, issue_date in cases:
            with self.assertRaises(LedgerValidationError):
                services.issue(KEEPER, item_id, recipient, quantity, issue_date, mode='catalog')

        self.item_a.refresh_from_db()
        self.assertEqual(self.item_a.quantity_on_hand, 10)
        self.assertEqual(IssuanceRecord.objects.count(), 0)

    def test_unknown_item(self):
        with self.assertRaises(NotFoundError):
            services.issue(KEEPER, 99999, 'Jane', 1, mode='catalog')

    def test_supervisor_cannot_issue(self):
        with self.assertRaises(AccessDeniedError) as context:
            services.issue(SUPERVISOR, self.item_a.pk, 'Jane', 1, mode='catalog')

        self.assertEqual(context.exception.request.state, IssuanceState.REJECTED)
        self.item_a.refresh_from_db()
        self.assertEqual(self.item_a.quantity_on_hand, 10)
        self.assertEqual(IssuanceRecord.objects.count(), 0)

    def test_persistence_failure_rolls_back_decrement(self):
        """
        Given: Item A with 10 on hand
        When: Writing the record fails after the decrement
        Then: PersistenceError, the request is FAILED and 10 remain
        """
        with patch.object(IssuanceRecord.objects, 'create', side_effect=DatabaseError('disk full')):
            with self.assertRaises(PersistenceError) as context:
                services.issue(KEEPER, self.item_a.pk, 'John Doe', 3, mode='catalog')

        request = context.exception.request
        self.assertEqual(request.state, IssuanceState.FAILED)
        self.assertIs(request.error, context.exception)
        self.assertIsNone(request.record)
        self.item_a.refresh_from_db()
        self.assertEqual(self.item_a.quantity_on_hand, 10)
        self.assertEqual(IssuanceRecord.objects.count(), 0)

    def test_item_read_failure_during_validation(self):
        """
        Given: Item A with 10 on hand
        When: Reading the item fails while validating
        Then: PersistenceError, the request is FAILED and nothing is written
        """
        with patch('inventory.services.get_item', side_effect=DatabaseError('connection lost')):
            with self.assertRaises(PersistenceError) as context:
                services.issue(KEEPER, self.item_a.pk, 'John Doe', 3, mode='catalog')

        request = context.exception.request
        self.assertEqual(request.state, IssuanceState.FAILED)
        self.assertTrue(request.is_terminal)
        self.item_a.refresh_from_db()
        self.assertEqual(self.item_a.quantity_on_hand, 10)
        self.assertEqual(IssuanceRecord.objects.count(), 0)

    def test_notice_queued_after_commit(self):
        with patch.object(send_issuance_notice, 'delay') as delay:
            with self.captureOnCommitCallbacks(execute=True):
                request = services.issue(KEEPER, self.item_a.pk, 'John Doe', 2, mode='catalog')

        delay.assert_called_once_with(request.record.pk)

    def test_notice_not_queued_on_rejection(self):
        with patch.object(send_issuance_notice, 'delay') as delay:
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                with self.assertRaises(InsufficientStockError):
                    services.issue(KEEPER, self.item_b.pk, 'Jane', 10, mode='catalog')

        self.assertEqual(len(callbacks), 0)
        delay.assert_not_called()


class PlainModeTestCase(TestCase):
    """Plain mode keeps a single quantity and writes no history."""

    def setUp(self):
        self.item = StockItem.objects.create(name='Belt', quantity_on_hand=6)

    def test_issue_writes_no_record(self):
        request = services.issue(KEEPER, self.item.pk, None, 2, mode='plain')

        self.assertEqual(request.state, IssuanceState.COMMITTED)
        self.assertIsNone(request.record)
        self.assertEqual(request.item.quantity_on_hand, 4)
        self.assertEqual(IssuanceRecord.objects.count(), 0)

    def test_restock_has_no_capacity(self):
        item = services.restock(KEEPER, self.item.pk, 100, mode='plain')

        self.assertEqual(item.quantity_on_hand, 106)
        self.assertIsNone(item.total_quantity)


class IssuanceRequestTestCase(TestCase):
    """State machine transitions."""

    def setUp(self):
        self.item = StockItem.objects.create(name='Tie', quantity_on_hand=5, total_quantity=5)

    def test_draft_can_be_cancelled(self):
        request = IssuanceRequest(self.item.pk, 'Jane', 1, mode='catalog')
        self.assertEqual(request.state, IssuanceState.DRAFT)

        request.cancel()

        self.assertEqual(request.state, IssuanceState.CANCELLED)
        self.assertTrue(request.is_terminal)
        with self.assertRaises(LedgerStateError):
            request.submit(KEEPER)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 5)

    def test_committed_cannot_be_cancelled_or_resubmitted(self):
        request = IssuanceRequest(self.item.pk, 'Jane', 1, mode='catalog').submit(KEEPER)

        with self.assertRaises(LedgerStateError):
            request.cancel()
        with self.assertRaises(LedgerStateError):
            request.submit(KEEPER)

        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 4)

    def test_rejected_is_terminal(self):
        request = IssuanceRequest(self.item.pk, 'Jane', 50, mode='catalog')

        with self.assertRaises(InsufficientStockError):
            request.submit(KEEPER)

        self.assertEqual(request.state, IssuanceState.REJECTED)
        self.assertTrue(request.is_terminal)
        self.assertIsInstance(request.error, LedgerError)


class RestockTestCase(TestCase):

    def test_restock_out_of_stock_item(self):
        """
        Given: Item D with 0 on hand
        When: Restocking 15
        Then: 15 on hand and status is in_stock
        """
        item_d = StockItem.objects.create(name='Cardigan', quantity_on_hand=0, total_quantity=0)

        item = services.restock(KEEPER, item_d.pk, 15, mode='catalog')

        self.assertEqual(item.quantity_on_hand, 15)
        self.assertEqual(item.total_quantity, 15)
        self.assertEqual(item.status, StockStatus.IN_STOCK)
        self.assertEqual(IssuanceRecord.objects.count(), 0)

    def test_plain_mode_restock_of_catalog_item(self):
        """
        Given: A catalog item at full capacity (10 of 10)
        When: Restocking 5 with the ledger in plain mode
        Then: Quantity and capacity both grow to 15
        """
        item = StockItem.objects.create(name='Blazer', quantity_on_hand=10, total_quantity=10)

        item = services.restock(KEEPER, item.pk, 5, mode='plain')

        item.refresh_from_db()
        self.assertEqual(item.quantity_on_hand, 15)
        self.assertEqual(item.total_quantity, 15)

    def test_restock_requires_positive_quantity(self):
        item = StockItem.objects.create(name='Cardigan', quantity_on_hand=2, total_quantity=2)

        for quantity in [0, -3, 2.5]:
            with self.assertRaises(LedgerValidationError):
                services.restock(KEEPER, item.pk, quantity, mode='catalog')

        item.refresh_from_db()
        self.assertEqual(item.quantity_on_hand, 2)

    def test_supervisor_cannot_restock(self):
        item = StockItem.objects.create(name='Cardigan', quantity_on_hand=2, total_quantity=2)

        with self.assertRaises(AccessDeniedError):
            services.restock(SUPERVISOR, item.pk, 5, mode='catalog')

        item.refresh_from_db()
        self.assertEqual(item.quantity_on_hand, 2)


class HistoryTestCase(TestCase):
    """Records outlive their item and corrections leave stock alone."""

    def setUp(self):
        self.category = Category.objects.create(name='Knitwear')
        self.item = StockItem.objects.create(
            name='Jumper', category=self.category, quantity_on_hand=10, total_quantity=10
        )
        self.record = services.issue(KEEPER, self.item.pk, 'John Doe', 3, mode='catalog').record

    def test_deleting_item_keeps_records(self):
        from inventory.services import delete_item

        delete_item(KEEPER, self.item.pk)

        record = IssuanceRecord.objects.get(pk=self.record.pk)
        self.assertEqual(record.item_id, self.item.pk)
        self.assertIsNone(record.resolved_item)
        with self.assertWarns(OrphanReferenceWarning):
            self.assertEqual(services.record_labels(record), ('Deleted Item', 'Uncategorized'))

    def test_deleted_category_label(self):
        from inventory.services import delete_category

        delete_category(KEEPER, self.category.pk)

        record = IssuanceRecord.objects.get(pk=self.record.pk)
        with self.assertWarns(OrphanReferenceWarning):
            self.assertEqual(record.labels, ('Jumper', 'Uncategorized'))

    def test_correct_record_leaves_stock(self):
        record = services.correct_record(
            KEEPER, self.record.pk,
            recipient_name='Jane Doe', quantity=5, issue_date='2024-02-01'
        )

        record.refresh_from_db()
        self.assertEqual(record.recipient_name, 'Jane Doe')
        self.assertEqual(record.quantity, 5)
        self.assertEqual(record.issue_date, datetime.date(2024, 2, 1))
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 7)

    def test_correct_record_validation(self):
        with self.assertRaises(LedgerValidationError):
            services.correct_record(KEEPER, self.record.pk, quantity=0)
        with self.assertRaises(LedgerValidationError):
            services.correct_record(KEEPER, self.record.pk, item_id=1)
        with self.assertRaises(AccessDeniedError):
            services.correct_record(SUPERVISOR, self.record.pk, quantity=1)

    def test_supervisor_cannot_delete_record(self):
        with self.assertRaises(AccessDeniedError):
            services.delete_record(SUPERVISOR, self.record.pk)

        self.assertTrue(IssuanceRecord.objects.filter(pk=self.record.pk).exists())

    def test_delete_record_leaves_stock(self):
        services.delete_record(KEEPER, self.record.pk)

        self.assertEqual(IssuanceRecord.objects.count(), 0)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 7)

    def test_list_and_recent_movements(self):
        second = services.issue(KEEPER, self.item.pk, 'Amina Otieno', 1, mode='catalog').record

        records = list(services.list_records())
        self.assertEqual(records, [second, self.record])
        self.assertEqual(list(services.list_records(recipient='amina')), [second])

        movements = services.recent_movements(limit=1)
        self.assertEqual(len(movements), 1)
        self.assertEqual(movements[0]['id'], second.pk)
        self.assertEqual(movements[0]['item_name'], 'Jumper')
        self.assertEqual(movements[0]['movement_type'], 'issued')


class IssuanceTaskTestCase(TestCase):

    def setUp(self):
        self.item = StockItem.objects.create(name='Tie', quantity_on_hand=8, total_quantity=8)

    def test_notice_success(self):
        record = services.issue(KEEPER, self.item.pk, 'John Doe', 2, mode='catalog').record

        result = send_issuance_notice.apply(args=[record.pk]).get()

        self.assertEqual(result['status'], 'success')
        self.assertEqual(result['record_id'], record.pk)

    def test_notice_skipped_for_deleted_item(self):
        record = services.issue(KEEPER, self.item.pk, 'John Doe', 2, mode='catalog').record
        StockItem.objects.filter(pk=self.item.pk).delete()

        result = send_issuance_notice.apply(args=[record.pk]).get()

        self.assertEqual(result['status'], 'skipped')

    def test_notice_missing_record(self):
        result = send_issuance_notice.apply(args=[99999]).get()
        self.assertEqual(result['status'], 'error')

    def test_daily_report(self):
        yesterday = timezone.localdate() - datetime.timedelta(days=1)
        services.issue(KEEPER, self.item.pk, 'John Doe', 2, yesterday, mode='catalog')
        services.issue(KEEPER, self.item.pk, 'Jane Doe', 3, yesterday, mode='catalog')
        services.issue(KEEPER, self.item.pk, 'Jane Doe', 1, yesterday - datetime.timedelta(days=3),
                       mode='catalog')

        stats = generate_daily_issuance_report()

        self.assertEqual(stats['total_issuances'], 2)
        self.assertEqual(stats['units_issued'], 5)
        self.assertEqual(stats['recipients'], 2)
        self.assertEqual(stats['date'], yesterday.isoformat())


class IssuanceAPITestCase(APITestCase):

    def setUp(self):
        self.keeper = User.objects.create_user('keeper', password='pass12345')
        self.keeper.groups.add(Group.objects.create(name='storekeeper'))
        self.boss = User.objects.create_user('boss', password='pass12345')
        self.boss.groups.add(Group.objects.create(name='supervisor'))
        self.item = StockItem.objects.create(name='Tie', quantity_on_hand=4, total_quantity=4)

    def test_issue_endpoint(self):
        self.client.force_authenticate(user=self.keeper)

        response = self.client.post(
            f'/api/items/{self.item.pk}/issue/',
            {'recipient_name': 'John Doe', 'quantity': 3, 'issue_date': '2024-01-01'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['state'], 'committed')
        self.assertEqual(response.data['item']['quantity_on_hand'], 1)
        self.assertEqual(response.data['item']['status'], 'low_stock')
        self.assertEqual(response.data['record']['recipient_name'], 'John Doe')

    def test_issue_insufficient_stock(self):
        self.client.force_authenticate(user=self.keeper)

        response = self.client.post(
            f'/api/items/{self.item.pk}/issue/',
            {'recipient_name': 'Jane', 'quantity': 10},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'insufficient_stock')
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 4)

    def test_issue_unknown_item(self):
        self.client.force_authenticate(user=self.keeper)

        response = self.client.post(
            '/api/items/99999/issue/', {'recipient_name': 'Jane', 'quantity': 1}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'not_found')

    def test_supervisor_cannot_issue(self):
        self.client.force_authenticate(user=self.boss)

        response = self.client.post(
            f'/api/items/{self.item.pk}/issue/', {'recipient_name': 'Jane', 'quantity': 1}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 4)

    def test_restock_endpoint(self):
        self.client.force_authenticate(user=self.keeper)

        response = self.client.post(f'/api/items/{self.item.pk}/restock/', {'quantity': 15}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quantity_on_hand'], 19)
        self.assertEqual(response.data['status'], 'in_stock')

    def test_supervisor_cannot_delete_record(self):
        record = services.issue(KEEPER, self.item.pk, 'John Doe', 1, mode='catalog').record
        self.client.force_authenticate(user=self.boss)

        response = self.client.delete(f'/api/issuances/{record.pk}/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(IssuanceRecord.objects.filter(pk=record.pk).exists())

    def test_history_endpoints(self):
        services.issue(KEEPER, self.item.pk, 'John Doe', 1, mode='catalog')
        self.client.force_authenticate(user=self.boss)

        listed = self.client.get('/api/issuances/')
        recent = self.client.get('/api/issuances/recent/', {'limit': 'many'})

        self.assertEqual(listed.status_code, status.HTTP_200_OK)
        self.assertEqual(listed.data['results'][0]['item_name'], 'Tie')
        self.assertEqual(recent.status_code, status.HTTP_200_OK)
        self.assertEqual(len(recent.data), 1)


class ConcurrentIssueTestCase(TransactionTestCase):
    """
    Concurrent issues against one item.
    Requires a database with row locking.
    """

    def setUp(self):
        self.item = StockItem.objects.create(name='Limited Tie', quantity_on_hand=10)

    @skipUnlessDBFeature('has_select_for_update')
    def test_concurrent_issues_no_overselling(self):
        """
        Given: 10 units in stock
        When: Two concurrent issues of 8 units each
        Then: At most one commits and stock never goes negative
        """
        results = {}

        def issue(key):
            try:
                request = services.issue(KEEPER, self.item.pk, key, 8, mode='plain')
                results[key] = request.state
            except LedgerError as exc:
                results[key] = exc.request.state
            finally:
                connection.close()

        threads = [threading.Thread(target=issue, args=(key,)) for key in ('first', 'second')]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.item.refresh_from_db()
        committed = sum(1 for state in results.values() if state == IssuanceState.COMMITTED)

        self.assertLessEqual(committed, 1)
        self.assertEqual(self.item.quantity_on_hand, 10 - 8 * committed)
