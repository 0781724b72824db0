"""
Tests for the ERP integrations: Business Central stock lookups and the Jubelio relay
"""
import io
import json
from unittest import mock

import openpyxl
import requests
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.integrations import services

ERP_SETTINGS = {
    'BC_API_URL': 'https://bc.example.com/ODataV4/GetItemStock',
    'BC_USERNAME': 'svc-warehouse',
    'BC_PASSWORD': 'secret',
    'JUBELIO_WEBHOOK_URL': 'https://mirror.example.com/jubelio/stock',
    'JUBELIO_API_TOKEN': 'token-123',
    'JUBELIO_MIRROR_TOKEN': 'mirror-456',
}

BC_ITEMS = [
    {
        'itemNo': 'SPE110000001',
        'variants': [
            {'variantCode': '40', 'stock': 3, 'jubelioItemId': 901},
            {'variantCode': '41', 'stock': 2, 'jubelioItemId': 902},
        ],
    },
]


def _response(status_code=200, payload=None, text=''):
    response = mock.Mock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f'{status_code} error')
    else:
        response.raise_for_status.return_value = None
    return response


@override_settings(**ERP_SETTINGS)
class ErpServiceTests(TestCase):
    @mock.patch('backend.integrations.services.requests.post')
    def test_fetch_item_stock_parses_value_string(self, mock_post):
        """Test the item list serialized inside ``value`` is decoded"""
        mock_post.return_value = _response(payload={'value': json.dumps(BC_ITEMS)})
        records = services.fetch_item_stock(['spe110000001'])
        self.assertIn('SPE110000001', records)

        _args, kwargs = mock_post.call_args
        self.assertEqual(kwargs['auth'], ('svc-warehouse', 'secret'))
        self.assertEqual(json.loads(kwargs['json']['skuListJson']), ['spe110000001'])

    @mock.patch('backend.integrations.services.requests.post')
    def test_lookup_skus(self, mock_post):
        """Test lookups report existence, variants and summed stock"""
        mock_post.return_value = _response(payload={'value': json.dumps(BC_ITEMS)})
        found, missing = services.lookup_skus(['SPE110000001', 'PIE120400002'])
        self.assertTrue(found['exists'])
        self.assertEqual(found['stock'], 5)
        self.assertEqual(found['variants'][0], {'variant_code': '40', 'stock': 3, 'jubelio_item_id': 901})
        self.assertFalse(missing['exists'])
        self.assertEqual(missing['variants'], [])

    @mock.patch('backend.integrations.services.requests.post')
    def test_fetch_timeout(self, mock_post):
        """Test a timeout surfaces as an ERP error"""
        mock_post.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(services.ErpError):
            services.fetch_item_stock(['SPE110000001'])

    @override_settings(BC_API_URL='')
    def test_not_configured(self):
        """Test missing settings raise ErpNotConfigured"""
        with self.assertRaises(services.ErpNotConfigured):
            services.fetch_item_stock(['SPE110000001'])

    @mock.patch('backend.integrations.services.requests.post')
    def test_relay_headers(self, mock_post):
        """Test the relay sends bearer and mirror tokens without certificate checks"""
        mock_post.return_value = _response(status_code=202, text='accepted')
        result = services.relay_stock_data([{'sku': 'SPE110000001', 'stock': 4}])
        self.assertEqual(result['status_code'], 202)

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], ERP_SETTINGS['JUBELIO_WEBHOOK_URL'])
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer token-123')
        self.assertEqual(kwargs['headers']['X-Mirror-Token'], 'mirror-456')
        self.assertFalse(kwargs['verify'])
        self.assertEqual(kwargs['json'], {'items': [{'sku': 'SPE110000001', 'stock': 4}]})

    @mock.patch('backend.integrations.services.requests.post')
    def test_relay_error_status(self, mock_post):
        """Test an error answer from the webhook raises"""
        mock_post.return_value = _response(status_code=500, text='boom')
        with self.assertRaises(services.ErpError):
            services.relay_stock_data([{'sku': 'SPE110000001', 'stock': 4}])


@override_settings(**ERP_SETTINGS)
class ErpEndpointTests(TestCase):
    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)

    @mock.patch('backend.integrations.services.requests.post')
    def test_validate_sku(self, mock_post):
        """Test validating one SKU"""
        mock_post.return_value = _response(payload={'value': json.dumps(BC_ITEMS)})
        response = self.client.post('/api/validate-sku/', {'sku': 'SPE110000001'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['exists'])

    def test_validate_sku_requires_value(self):
        """Test an empty SKU is rejected"""
        response = self.client.post('/api/validate-sku/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @mock.patch('backend.integrations.services.requests.post')
    def test_get_item_details(self, mock_post):
        """Test looking up several SKUs"""
        mock_post.return_value = _response(payload={'value': json.dumps(BC_ITEMS)})
        response = self.client.post('/api/get-item-details/', {'skus': ['SPE110000001', 'X']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 2)

    @mock.patch('backend.integrations.services.requests.post')
    def test_erp_unreachable(self, mock_post):
        """Test connection failures answer 502"""
        mock_post.side_effect = requests.exceptions.ConnectionError('refused')
        response = self.client.post('/api/validate-sku/', {'sku': 'SPE110000001'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertIn('error', response.data)

    @override_settings(JUBELIO_API_TOKEN='')
    def test_relay_not_configured(self):
        """Test a missing webhook token answers 503"""
        response = self.client.post('/api/save-stock-data/', {'items': [{'sku': 'A', 'stock': 1}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    @mock.patch('backend.integrations.services.requests.post')
    def test_save_stock_data(self, mock_post):
        """Test relaying stock lines records an audit entry"""
        mock_post.return_value = _response(status_code=200, text='ok')
        response = self.client.post('/api/save-stock-data/', {'items': [
            {'sku': 'SPE110000001', 'variant_code': '40', 'jubelio_item_id': 901, 'stock': 3},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['relay_status'], 200)
        self.assertTrue(AuditLog.objects.filter(action='erp_relay').exists())

    def test_save_stock_data_invalid(self):
        """Test negative stock is rejected before relaying"""
        response = self.client.post('/api/save-stock-data/', {'items': [{'sku': 'A', 'stock': -1}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @mock.patch('backend.integrations.services.requests.post')
    def test_sku_lookup_import(self, mock_post):
        """Test the SKU column is detected and duplicates are looked up once"""
        mock_post.return_value = _response(payload={'value': json.dumps(BC_ITEMS)})
        workbook = openpyxl.Workbook()
        for row in [['Item SKU', 'Note'], ['SPE110000001', 'a'], ['spe110000001', 'b'], ['PIE120400002', 'c']]:
            workbook.active.append(row)
        buffer = io.BytesIO()
        workbook.save(buffer)
        upload = SimpleUploadedFile('skus.xlsx', buffer.getvalue())

        response = self.client.post('/api/sku-lookup/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['valid'], 1)
        self.assertEqual(response.data['invalid'], 1)

    def test_sku_lookup_template(self):
        """Test the SKU template download"""
        response = self.client.get('/api/sku-lookup/template/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        workbook = openpyxl.load_workbook(io.BytesIO(response.content))
        self.assertEqual(workbook.active['A1'].value, 'SKU')
