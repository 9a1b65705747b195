"""
Django Admin configuration for issuance records.
"""
from django.contrib import admin
from .models import IssuanceRecord


@admin.register(IssuanceRecord)
class IssuanceRecordAdmin(admin.ModelAdmin):
    list_display = ['id', 'recipient_name', 'item_name', 'item_category', 'quantity', 'issue_date', 'created_at']
    list_filter = ['issue_date', 'created_at']
    search_fields = ['recipient_name']
    ordering = ['-created_at']
    readonly_fields = ['item', 'quantity', 'created_at']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('item__category')

    def item_name(self, obj):
        return obj.labels[0]
    item_name.short_description = 'Item'

    def item_category(self, obj):
        return obj.labels[1]
    item_category.short_description = 'Category'

    def has_add_permission(self, request):
        # records are only created by an issuance
        return False
