"""
Tests for the inventory store.

Test Cases:
1. Status classification boundaries
2. Item creation in catalog and plain mode
3. Permission gate blocks supervisors with no state change
4. Quantity invariants on update and adjustment
5. Dangling category references fall back to "Uncategorized"
6. API endpoints
"""
from django.contrib.auth.models import Group, User
from django.core.exceptions import ImproperlyConfigured
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from core.access import Session
from core.exceptions import (
    AccessDeniedError,
    InsufficientStockError,
    LedgerValidationError,
    NotFoundError,
    OrphanReferenceWarning,
    PersistenceError,
)
from inventory import services
from inventory.models import Category, StockItem
from inventory.modes import LedgerMode, resolve_mode
from inventory.status import LOW_STOCK_THRESHOLD, StockStatus, classify
from inventory.tasks import report_low_stock

KEEPER = Session(role='storekeeper', actor='keeper')
SUPERVISOR = Session(role='supervisor', actor='boss')


class ClassifyTestCase(TestCase):
    """Status is derived from quantity on hand."""

    def test_boundaries(self):
        self.assertEqual(classify(0), StockStatus.OUT_OF_STOCK)
        self.assertEqual(classify(1), StockStatus.LOW_STOCK)
        self.assertEqual(classify(4), StockStatus.LOW_STOCK)
        self.assertEqual(classify(5), StockStatus.IN_STOCK)
        self.assertEqual(classify(500), StockStatus.IN_STOCK)

    def test_threshold(self):
        self.assertEqual(LOW_STOCK_THRESHOLD, 5)

    def test_status_follows_out_of_band_edit(self):
        """
        Given: An item with 10 units
        When: Its quantity is changed directly in the database
        Then: The status read afterwards reflects the new quantity
        """
        item = StockItem.objects.create(name='Tie', quantity_on_hand=10)
        StockItem.objects.filter(pk=item.pk).update(quantity_on_hand=2)

        item.refresh_from_db()
        self.assertEqual(item.status, StockStatus.LOW_STOCK)


class LedgerModeTestCase(TestCase):

    @override_settings(INVENTORY_LEDGER_MODE='plain')
    def test_configured_mode(self):
        self.assertEqual(resolve_mode(), LedgerMode.PLAIN)

    def test_explicit_mode_wins(self):
        self.assertEqual(resolve_mode('catalog'), LedgerMode.CATALOG)

    @override_settings(INVENTORY_LEDGER_MODE='warehouse')
    def test_unknown_mode(self):
        with self.assertRaises(ImproperlyConfigured):
            resolve_mode()


class AddItemTestCase(TestCase):

    def setUp(self):
        self.category = Category.objects.create(name='Shirts')

    def test_catalog_mode_tracks_capacity(self):
        item = services.add_item(KEEPER, 'White Shirt', self.category.pk, 40, mode='catalog')

        self.assertEqual(item.quantity_on_hand, 40)
        self.assertEqual(item.total_quantity, 40)
        self.assertEqual(item.category_label, 'Shirts')
        self.assertEqual(item.status, StockStatus.IN_STOCK)

    def test_plain_mode_has_no_capacity(self):
        item = services.add_item(KEEPER, 'White Shirt', None, 40, mode='plain')

        self.assertEqual(item.quantity_on_hand, 40)
        self.assertIsNone(item.total_quantity)
        self.assertEqual(item.category_label, 'Uncategorized')

    def test_name_is_trimmed_and_required(self):
        item = services.add_item(KEEPER, '  Belt  ', initial_quantity=1)
        self.assertEqual(item.name, 'Belt')

        for name in ['', '   ', None]:
            with self.assertRaises(LedgerValidationError):
                services.add_item(KEEPER, name, initial_quantity=1)

    def test_quantity_must_be_non_negative_integer(self):
        for quantity in [-1, 2.5, '10', True, None]:
            with self.assertRaises(LedgerValidationError):
                services.add_item(KEEPER, 'Belt', initial_quantity=quantity)
        self.assertEqual(StockItem.objects.count(), 0)

    def test_unknown_category(self):
        with self.assertRaises(NotFoundError):
            services.add_item(KEEPER, 'Belt', category_id=99999, initial_quantity=1)

    def test_supervisor_cannot_add_item(self):
        """
        Given: A supervisor session
        When: Adding "New Shirt" with 50 units
        Then: PermissionError and no item is created
        """
        with self.assertRaises(PermissionError):
            services.add_item(SUPERVISOR, 'New Shirt', None, 50)

        self.assertEqual(StockItem.objects.count(), 0)

    def test_permission_checked_before_validation(self):
        with self.assertRaises(AccessDeniedError):
            services.add_item(SUPERVISOR, '', None, -5)


class UpdateItemTestCase(TestCase):

    def setUp(self):
        self.item = StockItem.objects.create(name='Jumper', quantity_on_hand=10, total_quantity=20)

    def test_overwrite_fields(self):
        category = Category.objects.create(name='Knitwear')

        item = services.update_item(
            KEEPER, self.item.pk,
            name='Cardigan', category_id=category.pk, quantity_on_hand=15, total_quantity=30
        )

        item.refresh_from_db()
        self.assertEqual(item.name, 'Cardigan')
        self.assertEqual(item.category_id, category.pk)
        self.assertEqual(item.quantity_on_hand, 15)
        self.assertEqual(item.total_quantity, 30)

    def test_quantity_above_capacity_rejected(self):
        with self.assertRaises(LedgerValidationError):
            services.update_item(KEEPER, self.item.pk, quantity_on_hand=25, total_quantity=20)

        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 10)

    def test_merged_values_are_checked(self):
        """Lowering capacity below the stored quantity is rejected too."""
        with self.assertRaises(LedgerValidationError):
            services.update_item(KEEPER, self.item.pk, total_quantity=5)

        self.item.refresh_from_db()
        self.assertEqual(self.item.total_quantity, 20)

    def test_negative_quantity_rejected(self):
        with self.assertRaises(LedgerValidationError):
            services.update_item(KEEPER, self.item.pk, quantity_on_hand=-1)

    def test_unknown_field_rejected(self):
        with self.assertRaises(LedgerValidationError):
            services.update_item(KEEPER, self.item.pk, status='in_stock')

    def test_supervisor_cannot_update(self):
        with self.assertRaises(AccessDeniedError):
            services.update_item(SUPERVISOR, self.item.pk, name='Renamed')

        self.item.refresh_from_db()
        self.assertEqual(self.item.name, 'Jumper')

    def test_missing_item(self):
        with self.assertRaises(NotFoundError):
            services.update_item(KEEPER, 99999, name='Ghost')

    def test_supervisor_cannot_delete(self):
        with self.assertRaises(AccessDeniedError):
            services.delete_item(SUPERVISOR, self.item.pk)

        self.assertTrue(StockItem.objects.filter(pk=self.item.pk).exists())


class AdjustQuantityTestCase(TestCase):

    def setUp(self):
        self.item = StockItem.objects.create(name='Socks', quantity_on_hand=4, total_quantity=10)

    def test_decrement(self):
        item = services.adjust_quantity(KEEPER, self.item.pk, -3)
        self.assertEqual(item.quantity_on_hand, 1)
        self.assertEqual(item.total_quantity, 10)

    def test_decrement_below_zero(self):
        with self.assertRaises(InsufficientStockError) as context:
            services.adjust_quantity(KEEPER, self.item.pk, -5)

        self.assertEqual(context.exception.requested, 5)
        self.assertEqual(context.exception.available, 4)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 4)

    def test_zero_delta_rejected(self):
        with self.assertRaises(LedgerValidationError):
            services.adjust_quantity(KEEPER, self.item.pk, 0)

    def test_increment_within_capacity(self):
        item = services.adjust_quantity(KEEPER, self.item.pk, 6)
        self.assertEqual(item.quantity_on_hand, 10)
        self.assertEqual(item.total_quantity, 10)

    def test_increment_beyond_capacity_rejected(self):
        """
        Given: An item with 4 on hand and capacity 10
        When: Adding 7 without growing capacity
        Then: A validation error (not a storage failure) and 4 remain
        """
        with self.assertRaises(LedgerValidationError) as context:
            services.adjust_quantity(KEEPER, self.item.pk, 7)

        self.assertNotIsInstance(context.exception, PersistenceError)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 4)
        self.assertEqual(self.item.total_quantity, 10)

    def test_plain_item_has_no_upper_bound(self):
        item = StockItem.objects.create(name='Gloves', quantity_on_hand=1)
        item = services.adjust_quantity(KEEPER, item.pk, 500)
        self.assertEqual(item.quantity_on_hand, 501)

    def test_grow_capacity(self):
        item = services.adjust_quantity(KEEPER, self.item.pk, 6, grow_capacity=True)
        self.assertEqual(item.quantity_on_hand, 10)
        self.assertEqual(item.total_quantity, 16)

    def test_supervisor_cannot_adjust(self):
        with self.assertRaises(AccessDeniedError):
            services.adjust_quantity(SUPERVISOR, self.item.pk, 1)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 4)


class DatabaseConstraintTestCase(TestCase):
    """The invariants hold even for writes that bypass the services."""

    def test_quantity_cannot_exceed_capacity(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                StockItem.objects.create(name='Cap', quantity_on_hand=11, total_quantity=10)

    def test_plain_item_has_no_upper_bound(self):
        item = StockItem.objects.create(name='Cap', quantity_on_hand=1000)
        self.assertFalse(item.tracks_capacity)


class CategoryTestCase(TestCase):

    def test_add_category(self):
        category = services.add_category(KEEPER, ' Shirts ', color='#2563eb')
        self.assertEqual(category.name, 'Shirts')
        self.assertEqual(category.color, '#2563eb')

    def test_supervisor_cannot_add_category(self):
        with self.assertRaises(AccessDeniedError):
            services.add_category(SUPERVISOR, 'Shirts')
        self.assertEqual(Category.objects.count(), 0)

    def test_delete_category_leaves_dangling_reference(self):
        """
        Given: An item in category "Shirts"
        When: The category is deleted
        Then: The item survives and displays as "Uncategorized"
        """
        category = Category.objects.create(name='Shirts')
        item = StockItem.objects.create(name='Polo', category=category, quantity_on_hand=3)

        services.delete_category(KEEPER, category.pk)

        item = StockItem.objects.get(pk=item.pk)
        self.assertEqual(item.category_id, category.pk)
        with self.assertWarns(OrphanReferenceWarning):
            self.assertEqual(item.category_label, 'Uncategorized')

    def test_supervisor_cannot_delete_category(self):
        category = Category.objects.create(name='Shirts')
        with self.assertRaises(AccessDeniedError):
            services.delete_category(SUPERVISOR, category.pk)
        self.assertTrue(Category.objects.filter(pk=category.pk).exists())


class ListItemsTestCase(TestCase):

    def setUp(self):
        self.shirts = Category.objects.create(name='Shirts')
        StockItem.objects.create(name='White Shirt', category=self.shirts, quantity_on_hand=0)
        StockItem.objects.create(name='Blue Shirt', category=self.shirts, quantity_on_hand=3)
        StockItem.objects.create(name='Grey Trousers', quantity_on_hand=12)

    def test_filter_by_status(self):
        names = lambda qs: [item.name for item in qs]

        self.assertEqual(names(services.list_items(status='out_of_stock')), ['White Shirt'])
        self.assertEqual(names(services.list_items(status='low_stock')), ['Blue Shirt'])
        self.assertEqual(names(services.list_items(status='in_stock')), ['Grey Trousers'])

    def test_unknown_status(self):
        with self.assertRaises(LedgerValidationError):
            services.list_items(status='discontinued')

    def test_search_and_category(self):
        self.assertEqual(services.list_items(search='shirt').count(), 2)
        self.assertEqual(services.list_items(category_id=self.shirts.pk).count(), 2)

    def test_summary(self):
        self.assertEqual(services.stock_summary(), {
            'total_items': 3,
            'in_stock': 1,
            'low_stock': 1,
            'out_of_stock': 1,
        })

    def test_low_stock_report(self):
        report = report_low_stock()
        self.assertEqual(report['out_of_stock'], ['White Shirt (0)'])
        self.assertEqual(report['low_stock'], ['Blue Shirt (3)'])


class InventoryAPITestCase(APITestCase):
    """Inventory endpoints enforce the role gate and the invariants."""

    def setUp(self):
        self.keeper = User.objects.create_user('keeper', password='pass12345')
        self.keeper.groups.add(Group.objects.create(name='storekeeper'))
        self.boss = User.objects.create_user('boss', password='pass12345')
        self.boss.groups.add(Group.objects.create(name='supervisor'))
        self.item = StockItem.objects.create(name='Tie', quantity_on_hand=4, total_quantity=10)

    def test_list_items_with_status(self):
        self.client.force_authenticate(user=self.boss)

        response = self.client.get('/api/items/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        result = response.data['results'][0]
        self.assertEqual(result['name'], 'Tie')
        self.assertEqual(result['status'], 'low_stock')
        self.assertEqual(result['category_name'], 'Uncategorized')

    def test_invalid_status_filter(self):
        self.client.force_authenticate(user=self.boss)

        response = self.client.get('/api/items/', {'status': 'bogus'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'validation')

    def test_storekeeper_creates_item(self):
        self.client.force_authenticate(user=self.keeper)

        response = self.client.post(
            '/api/items/', {'name': 'New Shirt', 'initial_quantity': 50}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['quantity_on_hand'], 50)
        self.assertEqual(response.data['total_quantity'], 50)
        self.assertEqual(response.data['status'], 'in_stock')

    def test_supervisor_cannot_create_item(self):
        self.client.force_authenticate(user=self.boss)

        response = self.client.post(
            '/api/items/', {'name': 'New Shirt', 'initial_quantity': 50}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(StockItem.objects.filter(name='New Shirt').exists())

    def test_unauthenticated_is_rejected(self):
        response = self.client.get('/api/items/')
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_patch_violating_capacity(self):
        self.client.force_authenticate(user=self.keeper)

        response = self.client.patch(
            f'/api/items/{self.item.pk}/', {'quantity_on_hand': 11}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 4)

    def test_delete_item(self):
        self.client.force_authenticate(user=self.keeper)

        response = self.client.delete(f'/api/items/{self.item.pk}/')

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(StockItem.objects.filter(pk=self.item.pk).exists())

    def test_supervisor_cannot_delete_item(self):
        self.client.force_authenticate(user=self.boss)

        response = self.client.delete(f'/api/items/{self.item.pk}/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(StockItem.objects.filter(pk=self.item.pk).exists())

    def test_category_lifecycle(self):
        self.client.force_authenticate(user=self.keeper)

        created = self.client.post('/api/categories/', {'name': 'Shirts'}, format='json')
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)

        deleted = self.client.delete(f"/api/categories/{created.data['id']}/")
        self.assertEqual(deleted.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(Category.objects.count(), 0)

    def test_summary(self):
        self.client.force_authenticate(user=self.boss)

        response = self.client.get('/api/items/summary/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['low_stock'], 1)
