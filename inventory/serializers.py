"""
Serializers for inventory models.

Read serializers render models; input serializers only check request shape.
Business rules (permission, invariants) live in inventory.services.
"""
from rest_framework import serializers

from .models import Category, StockItem


class CategorySerializer(serializers.ModelSerializer):
    """Serializer for Category model."""
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'color', 'item_count', 'created_at']
        read_only_fields = fields

    def get_item_count(self, obj):
        """Get count of items in this category."""
        return obj.items.count()


class CategoryCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    color = serializers.CharField(max_length=32, required=False, allow_blank=True, allow_null=True)


class StockItemSerializer(serializers.ModelSerializer):
    """
    Serializer for StockItem with derived status and category label.
    Uses select_related('category') in view.
    """
    category_id = serializers.IntegerField(read_only=True, allow_null=True)
    category_name = serializers.SerializerMethodField()
    status = serializers.CharField(read_only=True)

    class Meta:
        model = StockItem
        fields = [
            'id', 'name', 'category_id', 'category_name',
            'quantity_on_hand', 'total_quantity', 'status',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_category_name(self, obj):
        return obj.category_label


class StockItemCreateSerializer(serializers.Serializer):
    """
    Request format:
    {"name": "School Shirt", "category_id": 1, "initial_quantity": 40}
    """
    name = serializers.CharField(max_length=200)
    category_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    initial_quantity = serializers.IntegerField(min_value=0, default=0)


class StockItemUpdateSerializer(serializers.Serializer):
    """Partial update; only supplied keys are overwritten."""
    name = serializers.CharField(max_length=200, required=False)
    category_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    quantity_on_hand = serializers.IntegerField(min_value=0, required=False)
    total_quantity = serializers.IntegerField(min_value=0, required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required")
        return attrs


class RestockSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)


class IssueSerializer(serializers.Serializer):
    """
    Request format:
    {"recipient_name": "John Doe", "quantity": 3, "issue_date": "2024-01-01"}

    recipient_name is only required in catalog mode; the service decides.
    """
    recipient_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    quantity = serializers.IntegerField(min_value=1)
    issue_date = serializers.DateField(required=False, allow_null=True)
