"""
Serializers for issuance records.
"""
from rest_framework import serializers

from inventory.serializers import StockItemSerializer
from .models import IssuanceRecord


class IssuanceRecordSerializer(serializers.ModelSerializer):
    """
    Issuance record with display labels.

    Labels fall back to "Deleted Item" / "Uncategorized" when the item or
    its category no longer exists.
    """
    item_id = serializers.IntegerField(read_only=True, allow_null=True)
    item_name = serializers.SerializerMethodField()
    item_category = serializers.SerializerMethodField()

    class Meta:
        model = IssuanceRecord
        fields = [
            'id', 'item_id', 'item_name', 'item_category',
            'recipient_name', 'quantity', 'issue_date', 'created_at'
        ]
        read_only_fields = fields

    def get_item_name(self, obj):
        return obj.labels[0]

    def get_item_category(self, obj):
        return obj.labels[1]


class IssuanceCorrectionSerializer(serializers.Serializer):
    """Partial correction of a past issuance."""
    recipient_name = serializers.CharField(max_length=200, required=False)
    quantity = serializers.IntegerField(min_value=1, required=False)
    issue_date = serializers.DateField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required")
        return attrs


class IssuanceResultSerializer(serializers.Serializer):
    """Outcome of a committed issuance request."""
    state = serializers.CharField()
    item = StockItemSerializer()
    record = IssuanceRecordSerializer(allow_null=True)


class MovementSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    item_name = serializers.CharField()
    movement_type = serializers.CharField()
    quantity = serializers.IntegerField()
    created_at = serializers.DateTimeField()
    recipient_name = serializers.CharField()
