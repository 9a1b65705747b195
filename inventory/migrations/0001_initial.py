import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Category name', max_length=100)),
                ('color', models.CharField(blank=True, help_text='Optional display color', max_length=32, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Category',
                'verbose_name_plural': 'Categories',
                'db_table': 'uniform_categories',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='StockItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Item name', max_length=200)),
                ('quantity_on_hand', models.PositiveIntegerField(db_column='remaining_quantity', default=0, help_text='Units currently available')),
                ('total_quantity', models.PositiveIntegerField(blank=True, help_text='Catalog capacity (catalog mode only)', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, db_column='category', db_constraint=False, help_text='Weak reference; may dangle after category deletion', null=True, on_delete=django.db.models.deletion.DO_NOTHING, related_name='items', to='inventory.category')),
            ],
            options={
                'verbose_name': 'Stock Item',
                'verbose_name_plural': 'Stock Items',
                'db_table': 'uniform_items',
                'ordering': ['name'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quantity_on_hand__gte', 0)), name='stock_item_quantity_non_negative'),
                    models.CheckConstraint(condition=models.Q(('total_quantity__isnull', True), ('quantity_on_hand__lte', models.F('total_quantity')), _connector='OR'), name='stock_item_quantity_within_capacity'),
                ],
            },
        ),
    ]
