from rest_framework import serializers
from backend.inventory.models import ItemStock
from backend.inventory.serializers import ItemStockSerializer
from backend.inventory.services import item_stock_totals
from .models import Item, ItemImage, ItemArchive, ItemRequest
from .utils import normalize_product_code, parse_product_code


class ItemImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ItemImage
        fields = ['id', 'image', 'alt_text', 'is_primary', 'created_at']


class ItemSerializer(serializers.ModelSerializer):
    # Declared explicitly so a duplicate code is answered with 409 by the view
    product_code = serializers.CharField(max_length=50)
    brand_name = serializers.SerializerMethodField()
    division_name = serializers.SerializerMethodField()
    category_name = serializers.SerializerMethodField()
    images = ItemImageSerializer(many=True, read_only=True)
    stock_totals = serializers.SerializerMethodField()
    created_by_name = serializers.SerializerMethodField()

    # Intake only: condition of the registered units
    condition = serializers.ChoiceField(choices=ItemStock.CONDITION_CHOICES, write_only=True, required=False, default='good')
    condition_notes = serializers.CharField(write_only=True, required=False, allow_blank=True, default='')

    class Meta:
        model = Item
        fields = [
            'product_code', 'description', 'brand_code', 'brand_name', 'product_division', 'division_name',
            'product_category', 'category_name', 'total_stock', 'period', 'season', 'unit_of_measure',
            'status', 'images', 'stock_totals', 'condition', 'condition_notes',
            'created_by', 'created_by_name', 'approved_by', 'approved_at', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'brand_code', 'product_division', 'product_category', 'status',
            'created_by', 'approved_by', 'approved_at', 'created_at', 'updated_at'
        ]

    def validate_product_code(self, value):
        code = normalize_product_code(value)
        if self.instance is not None and code != self.instance.product_code:
            raise serializers.ValidationError('Product code cannot be changed')
        parsed = parse_product_code(code)
        if not parsed['is_valid']:
            raise serializers.ValidationError(parsed['error'])
        return code

    def validate_season(self, value):
        return (value or '').strip().upper()

    def validate_unit_of_measure(self, value):
        return (value or '').strip().upper()

    def validate(self, attrs):
        code = attrs.get('product_code')
        if code:
            parsed = parse_product_code(code)
            attrs['brand_code'] = parsed['brand_code']
            attrs['product_division'] = parsed['product_division']
            attrs['product_category'] = parsed['product_category']
        return attrs

    def _parsed(self, obj):
        if not hasattr(obj, '_parsed_code'):
            obj._parsed_code = parse_product_code(obj.product_code)
        return obj._parsed_code

    def get_brand_name(self, obj):
        return self._parsed(obj).get('brand_name', obj.brand_code)

    def get_division_name(self, obj):
        return self._parsed(obj).get('division_name', obj.product_division)

    def get_category_name(self, obj):
        return self._parsed(obj).get('category_name', obj.product_category)

    def get_stock_totals(self, obj):
        """Summed counters; list views annotate ``sum_<counter>`` to avoid a query per row"""
        if hasattr(obj, 'sum_pending'):
            totals = {field: getattr(obj, f'sum_{field}') or 0 for field in ItemStock.COUNTER_FIELDS}
            totals['total'] = sum(totals.values())
            return totals
        return item_stock_totals(obj)

    def get_created_by_name(self, obj):
        return obj.created_by.display_name if obj.created_by else None


class ItemRequestSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='item_id', read_only=True)
    description = serializers.CharField(source='item.description', read_only=True)
    total_stock = serializers.IntegerField(source='item.total_stock', read_only=True)
    unit_of_measure = serializers.CharField(source='item.unit_of_measure', read_only=True)
    item_status = serializers.CharField(source='item.status', read_only=True)
    requested_by_name = serializers.SerializerMethodField()
    processed_by_name = serializers.SerializerMethodField()

    class Meta:
        model = ItemRequest
        fields = [
            'id', 'product_code', 'description', 'total_stock', 'unit_of_measure', 'item_status',
            'requested_by', 'requested_by_name', 'status', 'notes', 'rejection_reason',
            'processed_by', 'processed_by_name', 'processed_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_requested_by_name(self, obj):
        return obj.requested_by.display_name if obj.requested_by else None

    def get_processed_by_name(self, obj):
        return obj.processed_by.display_name if obj.processed_by else None


class ItemDetailSerializer(ItemSerializer):
    """Item with its stock rows and latest intake request"""
    stock = serializers.SerializerMethodField()
    latest_request = serializers.SerializerMethodField()

    class Meta(ItemSerializer.Meta):
        fields = ItemSerializer.Meta.fields + ['stock', 'latest_request']

    def get_stock(self, obj):
        rows = obj.stock_entries.select_related('box', 'box__location').order_by('id')
        return ItemStockSerializer(rows, many=True).data

    def get_latest_request(self, obj):
        item_request = obj.requests.order_by('-created_at', '-id').first()
        return ItemRequestSerializer(item_request).data if item_request else None


class ItemArchiveSerializer(serializers.ModelSerializer):
    archived_by_name = serializers.SerializerMethodField()

    class Meta:
        model = ItemArchive
        fields = ['id', 'reason', 'archived_by', 'archived_by_name', 'archived_at', 'stock_snapshot', 'metadata']
        read_only_fields = fields

    def get_archived_by_name(self, obj):
        return obj.archived_by.display_name if obj.archived_by else None


class ArchivedItemSerializer(ItemSerializer):
    archive = ItemArchiveSerializer(read_only=True)

    class Meta(ItemSerializer.Meta):
        fields = ItemSerializer.Meta.fields + ['archive']
