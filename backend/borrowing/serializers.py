from django.utils import timezone
from rest_framework import serializers
from backend.inventory.models import ItemStock
from .models import BorrowRequest, BorrowRequestItem


class BorrowRequestItemSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='item_id', read_only=True)
    description = serializers.CharField(source='item.description', read_only=True)
    unit_of_measure = serializers.CharField(source='item.unit_of_measure', read_only=True)
    box_number = serializers.CharField(source='box.box_number', read_only=True, default=None)
    return_box_number = serializers.CharField(source='return_box.box_number', read_only=True, default=None)

    class Meta:
        model = BorrowRequestItem
        fields = [
            'id', 'product_code', 'description', 'unit_of_measure', 'quantity', 'status',
            'box', 'box_number', 'return_box', 'return_box_number', 'return_condition', 'return_notes',
            'completed_by', 'completed_at', 'seeded_by', 'seeded_at'
        ]
        read_only_fields = fields


class BorrowRequestSerializer(serializers.ModelSerializer):
    requester_name = serializers.CharField(source='requester.display_name', read_only=True)
    department_name = serializers.CharField(source='requester.department.name', read_only=True, default=None)
    items = BorrowRequestItemSerializer(many=True, read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)
    total_quantity = serializers.SerializerMethodField()

    class Meta:
        model = BorrowRequest
        fields = [
            'id', 'requester', 'requester_name', 'department_name', 'start_date', 'end_date', 'reason', 'status',
            'manager_approved_by', 'manager_approved_at', 'manager_rejected_by', 'manager_rejected_at',
            'manager_rejection_reason', 'storage_approved_by', 'storage_approved_at', 'storage_rejected_by',
            'storage_rejected_at', 'storage_rejection_reason', 'completed_by', 'completed_at',
            'is_overdue', 'total_quantity', 'items', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_total_quantity(self, obj):
        return sum(line.quantity for line in obj.items.all())


class BorrowItemInputSerializer(serializers.Serializer):
    product_code = serializers.CharField()
    quantity = serializers.IntegerField(min_value=1)


class BorrowRequestCreateSerializer(serializers.Serializer):
    items = BorrowItemInputSerializer(many=True)
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()
    reason = serializers.CharField()

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('At least one item is required')
        return value

    def validate_start_date(self, value):
        if timezone.localtime(value).date() < timezone.localdate():
            raise serializers.ValidationError('Start date cannot be in the past')
        return value

    def validate(self, attrs):
        if attrs['end_date'] <= attrs['start_date']:
            raise serializers.ValidationError({'end_date': 'End date must be after start date'})
        return attrs


class CompleteItemSerializer(serializers.Serializer):
    borrow_request_item_id = serializers.IntegerField()
    status = serializers.ChoiceField(choices=['complete', 'seeded'])
    return_condition = serializers.ChoiceField(choices=ItemStock.CONDITION_CHOICES, required=False, allow_blank=True)
    box_id = serializers.IntegerField(required=False, allow_null=True)
    return_notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['status'] == 'complete':
            if not attrs.get('return_condition'):
                raise serializers.ValidationError({'return_condition': 'Return condition is required for returned items'})
            if not attrs.get('box_id'):
                raise serializers.ValidationError({'box_id': 'A box is required for returned items'})
        return attrs


class SeedItemSerializer(serializers.Serializer):
    borrow_request_item_id = serializers.IntegerField()
    reason = serializers.CharField(required=False, allow_blank=True, default='')
