from rest_framework import serializers
from backend.catalog.serializers import ItemSerializer
from backend.inventory.models import ItemStock
from .models import ItemClearance, ClearanceForm, ClearanceFormItem, ClearedItem


class ItemClearanceSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='item_id', read_only=True)
    requested_by_name = serializers.SerializerMethodField()

    class Meta:
        model = ItemClearance
        fields = ['id', 'product_code', 'stock', 'quantity', 'reason', 'status', 'requested_by',
                  'requested_by_name', 'reference', 'metadata', 'created_at']
        read_only_fields = fields

    def get_requested_by_name(self, obj):
        return obj.requested_by.display_name if obj.requested_by else None


class ClearanceItemSerializer(ItemSerializer):
    """Item in clearance with its most recent clearance record"""
    latest_clearance = serializers.SerializerMethodField()

    class Meta(ItemSerializer.Meta):
        fields = ItemSerializer.Meta.fields + ['latest_clearance']

    def get_latest_clearance(self, obj):
        record = obj.clearances.order_by('-created_at', '-id').first()
        return ItemClearanceSerializer(record).data if record else None


class ClearanceFormItemSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='item_id', read_only=True)
    description = serializers.CharField(source='item.description', read_only=True)
    unit_of_measure = serializers.CharField(source='item.unit_of_measure', read_only=True)
    box_number = serializers.CharField(source='stock.box.box_number', read_only=True, default=None)
    location_name = serializers.CharField(source='stock.box.location.name', read_only=True, default=None)

    class Meta:
        model = ClearanceFormItem
        fields = ['id', 'product_code', 'description', 'unit_of_measure', 'stock', 'box_number',
                  'location_name', 'quantity', 'condition', 'condition_notes']
        read_only_fields = fields


class ClearedItemSerializer(serializers.ModelSerializer):
    cleared_by_name = serializers.SerializerMethodField()

    class Meta:
        model = ClearedItem
        fields = [
            'id', 'form', 'form_number', 'product_code', 'description', 'brand_code', 'product_division',
            'product_category', 'period', 'season', 'unit_of_measure', 'quantity', 'condition', 'notes',
            'box_id', 'box_number', 'location_id', 'location_name', 'cleared_by', 'cleared_by_name', 'cleared_at'
        ]
        read_only_fields = fields

    def get_cleared_by_name(self, obj):
        return obj.cleared_by.display_name if obj.cleared_by else None


class ClearanceFormSerializer(serializers.ModelSerializer):
    created_by_name = serializers.SerializerMethodField()
    item_count = serializers.SerializerMethodField()
    total_quantity = serializers.SerializerMethodField()

    class Meta:
        model = ClearanceForm
        fields = [
            'id', 'form_number', 'title', 'period', 'description', 'status',
            'created_by', 'created_by_name', 'approved_by', 'approved_at', 'rejected_by', 'rejected_at',
            'rejection_reason', 'processed_by', 'processed_at', 'scanned_form',
            'item_count', 'total_quantity', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_created_by_name(self, obj):
        return obj.created_by.display_name if obj.created_by else None

    def get_item_count(self, obj):
        if hasattr(obj, 'annotated_item_count'):
            return obj.annotated_item_count
        return obj.items.count()

    def get_total_quantity(self, obj):
        if hasattr(obj, 'annotated_total_quantity'):
            return obj.annotated_total_quantity or 0
        return sum(line.quantity for line in obj.items.all())


class ClearanceFormDetailSerializer(ClearanceFormSerializer):
    items = ClearanceFormItemSerializer(many=True, read_only=True)
    cleared_items = ClearedItemSerializer(many=True, read_only=True)

    class Meta(ClearanceFormSerializer.Meta):
        fields = ClearanceFormSerializer.Meta.fields + ['items', 'cleared_items']
        read_only_fields = fields


class ClearanceFormLineInputSerializer(serializers.Serializer):
    product_code = serializers.CharField()
    stock_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    condition = serializers.ChoiceField(choices=ItemStock.CONDITION_CHOICES, required=False, allow_blank=True)
    condition_notes = serializers.CharField(required=False, allow_blank=True, default='')


class ClearanceFormCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    period = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    description = serializers.CharField(required=False, allow_blank=True, default='')
    items = ClearanceFormLineInputSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('At least one item is required')
        return value


class ClearanceLineInputSerializer(serializers.Serializer):
    product_code = serializers.CharField()
    quantity = serializers.IntegerField(min_value=1)
