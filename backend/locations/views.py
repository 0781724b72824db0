import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db import IntegrityError, transaction
from django.db.models import Count
from backend.core.model_cache import (
    get_location_list_cache_key, get_box_list_cache_key, get_cached_list, cache_list,
    LOCATION_LIST_CACHE_TTL, BOX_LIST_CACHE_TTL
)
from backend.core.permissions import has_role, STORAGE_MASTER_ROLES
from backend.core.utils import create_audit_log
from .models import Location, Box
from .serializers import LocationSerializer, BoxSerializer

logger = logging.getLogger('backend.locations')


def _storage_forbidden(request, action):
    logger.warning(f"User {request.user.username} attempted to {action} without storage privileges")
    return Response({'error': 'Only storage masters can manage locations and boxes'}, status=status.HTTP_403_FORBIDDEN)


# Location views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def location_list_create(request):
    """List all locations or create a new location (create requires storage master)"""
    try:
        if request.method == 'GET':
            cache_key = get_location_list_cache_key()
            cached_data = get_cached_list(cache_key)
            if cached_data is not None:
                return Response(cached_data)

            locations = Location.objects.annotate(box_count=Count('boxes')).order_by('name')
            response_data = LocationSerializer(locations, many=True).data
            cache_list(cache_key, response_data, LOCATION_LIST_CACHE_TTL)
            return Response(response_data)

        if not has_role(request.user, STORAGE_MASTER_ROLES):
            return _storage_forbidden(request, 'create a location')

        logger.info(f"User {request.user.username} creating location with data: {request.data}")
        serializer = LocationSerializer(data=request.data)
        if serializer.is_valid():
            location = serializer.save()
            logger.info(f"Location '{location.name}' created by {request.user.username}")
            create_audit_log(request=request, action='create', model_name='Location',
                             object_id=location.id, object_name=location.name)
            return Response(LocationSerializer(location).data, status=status.HTTP_201_CREATED)

        logger.warning(f"Location creation validation failed: {serializer.errors}")
        return Response({'error': 'Invalid location data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error in location_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def location_detail(request, pk):
    """Retrieve, update or delete a location"""
    location = get_object_or_404(Location, pk=pk)

    if request.method == 'GET':
        return Response(LocationSerializer(location).data)

    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return _storage_forbidden(request, f'modify location {pk}')

    if request.method in ('PUT', 'PATCH'):
        serializer = LocationSerializer(location, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            logger.info(f"Location {pk} updated by {request.user.username}")
            return Response(serializer.data)
        logger.warning(f"Location update validation failed: {serializer.errors}")
        return Response({'error': 'Invalid location data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

    # DELETE: only when no box in the location holds stock
    from backend.inventory.models import ItemStock
    if ItemStock.objects.filter(box__location=location).exists():
        logger.warning(f"Refused to delete location {pk}: boxes still hold stock")
        return Response({'error': 'Cannot delete a location whose boxes still hold stock'}, status=status.HTTP_409_CONFLICT)

    name = location.name
    try:
        with transaction.atomic():
            location.boxes.all().delete()
            location.delete()
    except IntegrityError as e:
        logger.error(f"IntegrityError deleting location {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'Location is still referenced'}, status=status.HTTP_409_CONFLICT)
    logger.info(f"Location {pk} ({name}) deleted by {request.user.username}")
    create_audit_log(request=request, action='delete', model_name='Location', object_id=pk, object_name=name)
    return Response(status=status.HTTP_204_NO_CONTENT)


# Box views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def box_list_create(request):
    """List boxes (optionally for one location) or create a new box"""
    if request.method == 'GET':
        location_id = request.query_params.get('location') or None
        if location_id and not str(location_id).isdigit():
            return Response({'error': 'location must be a numeric id'}, status=status.HTTP_400_BAD_REQUEST)

        cache_key = get_box_list_cache_key(location_id)
        cached_data = get_cached_list(cache_key)
        if cached_data is not None:
            return Response(cached_data)

        boxes = Box.objects.select_related('location').annotate(item_count=Count('stock_entries'))
        if location_id:
            boxes = boxes.filter(location_id=location_id)
        response_data = BoxSerializer(boxes, many=True).data
        cache_list(cache_key, response_data, BOX_LIST_CACHE_TTL)
        return Response(response_data)

    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return _storage_forbidden(request, 'create a box')

    serializer = BoxSerializer(data=request.data)
    if serializer.is_valid():
        box = serializer.save()
        logger.info(f"Box {box} created by {request.user.username}")
        create_audit_log(request=request, action='create', model_name='Box', object_id=box.id, object_name=str(box))
        return Response(BoxSerializer(box).data, status=status.HTTP_201_CREATED)
    logger.warning(f"Box creation validation failed: {serializer.errors}")
    return Response({'error': 'Invalid box data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def box_detail(request, pk):
    """Retrieve, update or delete a box"""
    box = get_object_or_404(Box.objects.select_related('location'), pk=pk)

    if request.method == 'GET':
        return Response(BoxSerializer(box).data)

    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return _storage_forbidden(request, f'modify box {pk}')

    if request.method in ('PUT', 'PATCH'):
        serializer = BoxSerializer(box, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            logger.info(f"Box {pk} updated by {request.user.username}")
            return Response(serializer.data)
        return Response({'error': 'Invalid box data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

    if box.stock_entries.exists():
        logger.warning(f"Refused to delete box {pk}: box still holds stock")
        return Response({'error': 'Cannot delete a box that still holds stock'}, status=status.HTTP_409_CONFLICT)

    label = str(box)
    box.delete()
    logger.info(f"Box {pk} ({label}) deleted by {request.user.username}")
    create_audit_log(request=request, action='delete', model_name='Box', object_id=pk, object_name=label)
    return Response(status=status.HTTP_204_NO_CONTENT)
