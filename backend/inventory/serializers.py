from rest_framework import serializers
from .models import ItemStock, StockMovement


class ItemStockSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='item_id', read_only=True)
    description = serializers.CharField(source='item.description', read_only=True)
    item_status = serializers.CharField(source='item.status', read_only=True)
    unit_of_measure = serializers.CharField(source='item.unit_of_measure', read_only=True)
    box_number = serializers.CharField(source='box.box_number', read_only=True, default=None)
    location_id = serializers.IntegerField(source='box.location_id', read_only=True, default=None)
    location_name = serializers.CharField(source='box.location.name', read_only=True, default=None)
    total = serializers.IntegerField(read_only=True)

    class Meta:
        model = ItemStock
        fields = [
            'id', 'product_code', 'description', 'item_status', 'unit_of_measure',
            'box', 'box_number', 'location_id', 'location_name',
            'pending', 'in_storage', 'on_borrow', 'in_clearance', 'seeded', 'total',
            'condition', 'condition_notes', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class StockMovementSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='item_id', read_only=True)
    from_box_number = serializers.CharField(source='from_box.box_number', read_only=True, default=None)
    to_box_number = serializers.CharField(source='to_box.box_number', read_only=True, default=None)
    performed_by_name = serializers.SerializerMethodField()

    class Meta:
        model = StockMovement
        fields = [
            'id', 'product_code', 'stock', 'movement_type', 'quantity', 'from_state', 'to_state',
            'from_box', 'from_box_number', 'to_box', 'to_box_number',
            'reference_id', 'reference_type', 'performed_by', 'performed_by_name', 'notes', 'created_at'
        ]
        read_only_fields = fields

    def get_performed_by_name(self, obj):
        return obj.performed_by.display_name if obj.performed_by else None


class ItemMovementSerializer(serializers.Serializer):
    """Input for moving in-storage units between boxes"""
    product_code = serializers.CharField()
    source_stock_id = serializers.IntegerField()
    destination_box_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class SeededReturnSerializer(serializers.Serializer):
    stock_id = serializers.IntegerField()
    box_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    condition = serializers.ChoiceField(choices=ItemStock.CONDITION_CHOICES, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
