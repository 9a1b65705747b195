"""
Django Admin configuration for inventory models.

Quantities are read-only here; they change only through the ledger services.
"""
from django.contrib import admin
from .models import Category, StockItem


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'color', 'item_count', 'created_at']
    search_fields = ['name']
    ordering = ['name']

    def item_count(self, obj):
        return obj.items.count()
    item_count.short_description = 'Items'


@admin.register(StockItem)
class StockItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'category_label', 'quantity_on_hand', 'total_quantity', 'status', 'updated_at']
    list_filter = ['updated_at']
    search_fields = ['name']
    ordering = ['name']
    raw_id_fields = ['category']
    readonly_fields = ['quantity_on_hand', 'total_quantity', 'created_at', 'updated_at']

    def category_label(self, obj):
        return obj.category_label
    category_label.short_description = 'Category'

    def status(self, obj):
        return obj.status.label
    status.short_description = 'Status'
