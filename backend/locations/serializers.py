from rest_framework import serializers
from .models import Location, Box


class LocationSerializer(serializers.ModelSerializer):
    box_count = serializers.SerializerMethodField()

    class Meta:
        model = Location
        fields = ['id', 'name', 'description', 'box_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_box_count(self, obj):
        annotated = getattr(obj, 'box_count', None)
        return annotated if annotated is not None else obj.boxes.count()


class BoxSerializer(serializers.ModelSerializer):
    location_name = serializers.CharField(source='location.name', read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Box
        fields = ['id', 'box_number', 'location', 'location_name', 'description', 'item_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_item_count(self, obj):
        annotated = getattr(obj, 'item_count', None)
        return annotated if annotated is not None else obj.stock_entries.count()
