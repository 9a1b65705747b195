"""
Management command to seed the database with sample uniform stock.

Generates:
- Uniform categories
- Items per category with random starting quantities
- Sample issuances to students (catalog mode only)

All writes go through the ledger services with a storekeeper session, so
the quantity invariants hold for seeded data too.

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
    python manage.py seed_data --mode plain
"""
import random
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from core.access import Role, Session
from inventory import services
from inventory.models import Category, StockItem
from inventory.modes import LedgerMode, tracks_issuance
from issuance import services as issuance_services
from issuance.models import IssuanceRecord

CATALOG = {
    'Shirts': ['White Shirt', 'Blue Shirt', 'Polo Shirt'],
    'Trousers': ['Grey Trousers', 'Black Trousers', 'Shorts'],
    'Skirts': ['Pleated Skirt', 'Pinafore'],
    'Knitwear': ['V-Neck Jumper', 'Cardigan', 'Sleeveless Sweater'],
    'Sportswear': ['PE T-Shirt', 'PE Shorts', 'Track Suit'],
    'Accessories': ['School Tie', 'Belt', 'Socks (pair)', 'Badge'],
}

CATEGORY_COLORS = ['#2563eb', '#16a34a', '#d97706', '#dc2626', '#7c3aed', '#0891b2']

SIZES = ['S', 'M', 'L']

FIRST_NAMES = [
    'John', 'Jane', 'Amina', 'Brian', 'Grace', 'Peter', 'Mary', 'Kevin',
    'Faith', 'David', 'Mercy', 'Samuel', 'Joy', 'Daniel', 'Ruth'
]

LAST_NAMES = [
    'Doe', 'Otieno', 'Wanjiru', 'Mwangi', 'Achieng', 'Kamau', 'Njeri',
    'Kiprop', 'Mutua', 'Chebet'
]


class Command(BaseCommand):
    help = 'Seed the database with sample uniform categories, items and issuances'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--mode',
            choices=LedgerMode.values,
            default=None,
            help='Ledger mode (default: INVENTORY_LEDGER_MODE)',
        )
        parser.add_argument(
            '--issuances',
            type=int,
            default=40,
            help='Number of sample issuances to create (default: 40)',
        )

    def handle(self, *args, **options):
        session = Session(role=Role.STOREKEEPER.value, actor='seed_data')

        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            categories = self._create_categories(session)
            items = self._create_items(session, categories, options['mode'])
            if tracks_issuance(options['mode']):
                self._create_issuances(session, items, options['issuances'])

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear all existing data."""
        IssuanceRecord.objects.all().delete()
        StockItem.objects.all().delete()
        Category.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_categories(self, session):
        categories = {}
        for name, color in zip(CATALOG, CATEGORY_COLORS):
            category = Category.objects.filter(name=name).first()
            if category is None:
                category = services.add_category(session, name, color=color)
                self.stdout.write(f'  Created category: {name}')
            categories[name] = category

        self.stdout.write(self.style.SUCCESS(f'Created {len(categories)} categories'))
        return categories

    def _create_items(self, session, categories, mode):
        items = []
        for category_name, names in CATALOG.items():
            category = categories[category_name]
            for base_name in names:
                for size in SIZES:
                    item = services.add_item(
                        session,
                        f"{base_name} ({size})",
                        category_id=category.pk,
                        initial_quantity=random.choice([0, 2, 4, 10, 25, 40, 60]),
                        mode=mode,
                    )
                    items.append(item)

        self.stdout.write(self.style.SUCCESS(f'Created {len(items)} items'))
        return items

    def _create_issuances(self, session, items, count):
        """Issue random quantities of in-stock items to sample students."""
        today = timezone.localdate()
        created = 0

        for _ in range(count):
            in_stock = [item for item in items if item.quantity_on_hand > 0]
            if not in_stock:
                break
            item = random.choice(in_stock)
            request = issuance_services.issue(
                session,
                item.pk,
                f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
                random.randint(1, min(3, item.quantity_on_hand)),
                issue_date=today - timedelta(days=random.randint(0, 30)),
            )
            item.quantity_on_hand = request.item.quantity_on_hand
            created += 1

        self.stdout.write(self.style.SUCCESS(f'Created {created} issuances'))
