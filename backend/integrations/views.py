import logging
from rest_framework import serializers, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from backend.core.spreadsheets import SpreadsheetError, read_rows, tabular_response
from backend.core.utils import create_audit_log
from . import services

logger = logging.getLogger('backend.integrations')

SKU_HEADER_KEYWORDS = ('sku', 'item', 'product')


class StockLineSerializer(serializers.Serializer):
    sku = serializers.CharField()
    variant_code = serializers.CharField(required=False, allow_blank=True, default='')
    jubelio_item_id = serializers.IntegerField(required=False, allow_null=True)
    stock = serializers.IntegerField(min_value=0)


def _erp_error_response(error):
    if isinstance(error, services.ErpNotConfigured):
        return Response({'error': str(error)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response({'error': str(error)}, status=status.HTTP_502_BAD_GATEWAY)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def validate_sku(request):
    """Check one SKU against the ERP stock API"""
    sku = (request.data.get('sku') or '').strip()
    if not sku:
        return Response({'error': 'SKU is required'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        result = services.lookup_skus([sku])[0]
    except services.ErpError as e:
        return _erp_error_response(e)
    return Response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def get_item_details(request):
    skus = request.data.get('skus')
    if not isinstance(skus, list) or not skus:
        return Response({'error': 'skus must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)
    skus = [str(sku).strip() for sku in skus if str(sku).strip()]
    try:
        results = services.lookup_skus(skus)
    except services.ErpError as e:
        return _erp_error_response(e)
    return Response({'items': results})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def save_stock_data(request):
    """Relay stock lines to the Jubelio webhook"""
    items = request.data.get('items')
    if not isinstance(items, list) or not items:
        return Response({'error': 'Items are required'}, status=status.HTTP_400_BAD_REQUEST)
    serializer = StockLineSerializer(data=items, many=True)
    if not serializer.is_valid():
        return Response({'error': 'Invalid stock data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

    lines = [dict(line) for line in serializer.validated_data]
    try:
        relay = services.relay_stock_data(lines)
    except services.ErpError as e:
        return _erp_error_response(e)

    logger.info(f"User {request.user.username} relayed {len(lines)} stock lines to Jubelio")
    create_audit_log(request=request, action='erp_relay', model_name='StockRelay', object_id=len(lines),
                     object_name='Jubelio', changes={'skus': sorted({line['sku'] for line in lines})})
    return Response({
        'success': True,
        'message': 'Stock data sent successfully',
        'relay_status': relay['status_code'],
    })


def _sku_column(headers):
    for header in headers:
        lowered = header.lower()
        if any(keyword in lowered for keyword in SKU_HEADER_KEYWORDS):
            return header
    return None


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def sku_lookup_import(request):
    """Validate every SKU of an uploaded workbook against the ERP"""
    upload = request.FILES.get('file')
    if upload is None:
        return Response({'error': 'No file uploaded'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        headers, rows = read_rows(upload, allow_csv=False)
    except SpreadsheetError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    column = _sku_column(headers)
    if column is None:
        return Response({'error': 'No SKU column found (expected a header containing sku, item or product)'},
                        status=status.HTTP_400_BAD_REQUEST)

    skus = []
    seen = set()
    for _row_number, row in rows:
        sku = (row.get(column) or '').strip()
        if sku and sku.upper() not in seen:
            seen.add(sku.upper())
            skus.append(sku)
    if not skus:
        return Response({'error': 'The file contains no SKUs'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        lookups = services.lookup_skus(skus)
    except services.ErpError as e:
        return _erp_error_response(e)

    results = [
        {**lookup, 'status': 'valid' if lookup['exists'] else 'invalid'}
        for lookup in lookups
    ]
    valid = sum(1 for result in results if result['status'] == 'valid')
    logger.info(f"SKU lookup import by {request.user.username}: {valid}/{len(results)} valid")
    return Response({
        'total': len(results),
        'valid': valid,
        'invalid': len(results) - valid,
        'results': results,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sku_lookup_template(request):
    return tabular_response('xlsx', ['SKU'], [['SPE110000001'], ['PIE120400002']], 'sku_lookup_template', title='SKUs')
