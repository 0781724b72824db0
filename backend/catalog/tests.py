"""
Test suite for the catalog module
Tests: product codes, item registration, intake approval, archiving, import/export
"""
import io

import openpyxl
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from rest_framework import status
from backend.core.models import AuditLog, User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.catalog.models import Item, ItemArchive, ItemRequest
from backend.catalog.utils import parse_product_code
from backend.inventory.models import ItemStock
from backend.inventory.services import item_stock_totals, move_to_clearance


class ProductCodeTests(TestCase):
    def test_parse_valid_code(self):
        """Test a valid code is split into brand, division and category"""
        parsed = parse_product_code('spe110400123')
        self.assertTrue(parsed['is_valid'])
        self.assertEqual(parsed['brand_code'], 'SPE')
        self.assertEqual(parsed['division_name'], 'Footwear')
        self.assertEqual(parsed['category_name'], 'Running')

    def test_parse_invalid_format(self):
        """Test malformed codes are rejected"""
        self.assertFalse(parse_product_code('SP11')['is_valid'])
        self.assertFalse(parse_product_code('')['is_valid'])

    def test_parse_unknown_division(self):
        """Test an unknown division is rejected"""
        parsed = parse_product_code('SPE990000001')
        self.assertFalse(parsed['is_valid'])
        self.assertIn('99', parsed['error'])

    def test_unknown_brand_keeps_code(self):
        """Test an unknown brand falls back to its code"""
        self.assertEqual(parse_product_code('XYZ120100001')['brand_name'], 'XYZ')


class ItemRegistrationTests(TestCase):
    """Registering and editing items"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.item_master = TestDataFactory.create_user(role=User.ROLE_ITEM_MASTER, department=self.department)
        self.client.authenticate_user(self.item_master)

    def _payload(self, **overrides):
        data = {
            'product_code': 'spe110000001',
            'description': 'Accelerator FG Black',
            'total_stock': 12,
            'period': '2024-Q1',
            'season': 'ss',
            'unit_of_measure': 'PRS',
            'condition': 'excellent',
        }
        data.update(overrides)
        return data

    def test_create_item_without_units(self):
        """Test an item registered with no units gets a request but no stock row"""
        response = self.client.post('/api/items/', self._payload(total_stock=0), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(ItemStock.objects.filter(item_id='SPE110000001').exists())
        self.assertTrue(ItemRequest.objects.filter(item_id='SPE110000001', status='pending').exists())

    def test_create_item_registers_pending_units(self):
        """Test a new item is pending approval with pending stock and a request"""
        response = self.client.post('/api/items/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['product_code'], 'SPE110000001')
        self.assertEqual(response.data['status'], 'pending_approval')
        self.assertEqual(response.data['brand_name'], 'Specs')
        self.assertEqual(response.data['season'], 'SS')
        self.assertEqual(response.data['stock_totals']['pending'], 12)
        self.assertEqual(response.data['latest_request']['status'], 'pending')

        row = ItemStock.objects.get(item_id='SPE110000001')
        self.assertIsNone(row.box)
        self.assertEqual(row.condition, 'excellent')

    def test_duplicate_product_code(self):
        """Test registering an existing code answers 409"""
        TestDataFactory.create_item(product_code='SPE110000001')
        response = self.client.post('/api/items/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('error', response.data)

    def test_invalid_product_code(self):
        """Test an invalid code is a validation error"""
        response = self.client.post('/api/items/', self._payload(product_code='BAD'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('product_code', response.data['details'])

    def test_regular_user_cannot_create(self):
        """Test users without an item role get 403"""
        user = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        self.client.authenticate_user(user)
        response = self.client.post('/api/items/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_pending_item_resyncs_stock(self):
        """Test editing the total of a pending item updates its pending units"""
        self.client.post('/api/items/', self._payload(), format='json')
        response = self.client.patch('/api/items/SPE110000001/', {'total_stock': 20}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stock_totals']['pending'], 20)

    def test_item_master_cannot_edit_approved_item(self):
        """Test approved items are locked for item masters"""
        item = TestDataFactory.create_item()
        response = self.client.patch(f'/api/items/{item.product_code}/', {'description': 'New'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_product_code_cannot_change(self):
        """Test the product code is immutable"""
        self.client.post('/api/items/', self._payload(), format='json')
        response = self.client.patch('/api/items/SPE110000001/', {'product_code': 'SPE110000002'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ItemListTests(TestCase):
    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_user()
        self.client.authenticate_user(self.admin)
        self.box = TestDataFactory.create_box()

    def test_list_excludes_archived(self):
        """Test archived items are hidden unless a status is requested"""
        TestDataFactory.create_item()
        TestDataFactory.create_item(status='archived')
        response = self.client.get('/api/items/')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/items/', {'status': 'archived'})
        self.assertEqual(response.data['count'], 1)

    def test_list_sums_counters(self):
        """Test listed items carry summed stock counters"""
        item = TestDataFactory.create_item()
        TestDataFactory.create_stock(item=item, box=self.box, in_storage=4)
        TestDataFactory.create_stock(item=item, box=None, in_storage=0, on_borrow=2)
        response = self.client.get('/api/items/')
        totals = response.data['results'][0]['stock_totals']
        self.assertEqual(totals['in_storage'], 4)
        self.assertEqual(totals['on_borrow'], 2)
        self.assertEqual(totals['total'], 6)

    def test_filter_by_division(self):
        """Test filtering by product division"""
        TestDataFactory.create_item(product_code='SPE110000001')
        TestDataFactory.create_item(product_code='PIE120400001')
        response = self.client.get('/api/items/', {'division': '12'})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['product_code'], 'PIE120400001')

    def test_delete_item_on_borrow(self):
        """Test an item with units on borrow cannot be deleted"""
        item = TestDataFactory.create_item()
        TestDataFactory.create_stock(item=item, box=None, in_storage=0, on_borrow=1)
        response = self.client.delete(f'/api/items/{item.product_code}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_delete_item(self):
        """Test a superadmin deletes an item with its stock rows"""
        item = TestDataFactory.create_item()
        TestDataFactory.create_stock(item=item, box=self.box)
        response = self.client.delete(f'/api/items/{item.product_code}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ItemStock.objects.filter(item_id=item.product_code).exists())

    def test_bulk_delete_reports_errors(self):
        """Test bulk delete reports missing codes"""
        item = TestDataFactory.create_item()
        response = self.client.post('/api/items/bulk-delete/',
                                    {'product_codes': [item.product_code, 'SPE110099999']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deleted'], [item.product_code])
        self.assertEqual(response.data['errors'][0]['error'], 'Item not found')


class ItemRequestTests(TestCase):
    """Intake approval by storage masters"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.storage_master = TestDataFactory.create_user(role=User.ROLE_STORAGE_MASTER, department=self.department)
        self.client.authenticate_user(self.storage_master)
        self.box = TestDataFactory.create_box()
        self.item, self.item_request = TestDataFactory.create_pending_item(total_stock=6)

    def test_approve_moves_units_into_box(self):
        """Test approval shelves pending units and approves the item"""
        response = self.client.post(f'/api/item-requests/{self.item_request.id}/approve/',
                                    {'box_id': self.box.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.item.refresh_from_db()
        self.assertEqual(self.item.status, 'approved')
        self.assertEqual(self.item.approved_by, self.storage_master)
        totals = item_stock_totals(self.item)
        self.assertEqual(totals['pending'], 0)
        self.assertEqual(totals['in_storage'], 6)
        self.assertTrue(AuditLog.objects.filter(action='item_approve').exists())

    def test_approve_after_pending_units_cleared(self):
        """Test a request whose pending units all went to clearance can still be approved"""
        move_to_clearance(self.item, 6, self.storage_master, reason='Damaged on arrival')
        response = self.client.post(f'/api/item-requests/{self.item_request.id}/approve/',
                                    {'box_id': self.box.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.item.refresh_from_db()
        self.assertEqual(self.item.status, 'approved')
        totals = item_stock_totals(self.item)
        self.assertEqual(totals['in_clearance'], 6)
        self.assertEqual(totals['in_storage'], 0)
        self.assertEqual(totals['total'], 6)

    def test_approve_requires_box(self):
        """Test approval without a box is rejected"""
        response = self.client.post(f'/api/item-requests/{self.item_request.id}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approve_twice(self):
        """Test an approved request cannot be approved again"""
        self.client.post(f'/api/item-requests/{self.item_request.id}/approve/', {'box_id': self.box.id}, format='json')
        response = self.client.post(f'/api/item-requests/{self.item_request.id}/approve/',
                                    {'box_id': self.box.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reject_drops_pending_units(self):
        """Test rejection drops pending units and records the reason"""
        response = self.client.post(f'/api/item-requests/{self.item_request.id}/reject/',
                                    {'reason': 'Wrong size run'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.item_request.refresh_from_db()
        self.assertEqual(self.item_request.status, 'rejected')
        self.assertEqual(self.item_request.rejection_reason, 'Wrong size run')
        self.assertEqual(item_stock_totals(self.item)['total'], 0)

    def test_reject_requires_reason(self):
        """Test rejection needs a reason"""
        response = self.client.post(f'/api/item-requests/{self.item_request.id}/reject/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_approve(self):
        """Test approving several requests into one box"""
        _, second_request = TestDataFactory.create_pending_item(total_stock=2)
        response = self.client.post('/api/item-requests/bulk-approve/', {
            'request_ids': [self.item_request.id, second_request.id],
            'box_id': self.box.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(ItemRequest.objects.filter(status='approved').count(), 2)

    def test_bulk_approve_refreshes_box_list(self):
        """Test the cached box list picks up the shelved items"""
        cache.clear()
        url = f'/api/boxes/?location={self.box.location_id}'
        self.assertEqual(self.client.get(url).data[0]['item_count'], 0)
        self.client.post('/api/item-requests/bulk-approve/', {
            'request_ids': [self.item_request.id],
            'box_id': self.box.id,
        }, format='json')
        self.assertEqual(self.client.get(url).data[0]['item_count'], 1)

    def test_item_master_cannot_approve(self):
        """Test item masters cannot process intake requests"""
        item_master = TestDataFactory.create_user(role=User.ROLE_ITEM_MASTER, department=self.department)
        self.client.authenticate_user(item_master)
        response = self.client.post(f'/api/item-requests/{self.item_request.id}/approve/',
                                    {'box_id': self.box.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ArchiveTests(TestCase):
    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_user()
        self.client.authenticate_user(self.admin)
        self.item = TestDataFactory.create_item()
        TestDataFactory.create_stock(item=self.item, box=TestDataFactory.create_box(), in_storage=3)

    def test_archive_and_unarchive(self):
        """Test archiving snapshots stock and unarchiving restores the item"""
        response = self.client.post(f'/api/items/{self.item.product_code}/archive/',
                                    {'reason': 'Discontinued'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        archive = ItemArchive.objects.get(item=self.item)
        self.assertEqual(archive.stock_snapshot['in_storage'], 3)
        self.assertEqual(archive.metadata['previous_status'], 'approved')

        listing = self.client.get('/api/items/archived/')
        self.assertEqual(listing.data['count'], 1)
        self.assertEqual(listing.data['results'][0]['archive']['reason'], 'Discontinued')

        response = self.client.post(f'/api/items/{self.item.product_code}/unarchive/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.item.refresh_from_db()
        self.assertEqual(self.item.status, 'approved')
        self.assertFalse(ItemArchive.objects.filter(item=self.item).exists())

    def test_unarchive_pending_item_returns_to_approval(self):
        """Test an item archived before intake approval goes back to pending approval"""
        item, item_request = TestDataFactory.create_pending_item(total_stock=2)
        self.client.post(f'/api/items/{item.product_code}/archive/', {'reason': 'Duplicate'}, format='json')
        response = self.client.post(f'/api/items/{item.product_code}/unarchive/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        item.refresh_from_db()
        self.assertEqual(item.status, 'pending_approval')
        item_request.refresh_from_db()
        self.assertEqual(item_request.status, 'pending')

    def test_archive_requires_reason(self):
        """Test archiving needs a reason"""
        response = self.client.post(f'/api/items/{self.item.product_code}/archive/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_archive_with_units_on_borrow(self):
        """Test items with borrowed units cannot be archived"""
        TestDataFactory.create_stock(item=self.item, box=None, in_storage=0, on_borrow=1)
        response = self.client.post(f'/api/items/{self.item.product_code}/archive/',
                                    {'reason': 'Discontinued'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_archive_skips_ineligible(self):
        """Test bulk archive skips unknown and already archived items"""
        archived = TestDataFactory.create_item(status='archived')
        response = self.client.post('/api/items/bulk-archive/', {
            'product_codes': [self.item.product_code, archived.product_code, 'SPE110099999'],
            'reason': 'End of season',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['processed'], 1)
        self.assertEqual(len(response.data['skipped']), 2)


class ImportExportTests(TestCase):
    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_user()
        self.client.authenticate_user(self.admin)

    def _csv(self, body):
        header = 'Product Code,Description,Total Stock,Period,Season,Unit of Measure,Condition\n'
        return SimpleUploadedFile('items.csv', (header + body).encode('utf-8'), content_type='text/csv')

    def test_import_csv(self):
        """Test importing registers valid rows and reports failures"""
        TestDataFactory.create_item(product_code='SPE110000003')
        upload = self._csv(
            'SPE110000001,Shoe A,5,2024-Q1,SS,PRS,good\n'
            'BAD,Shoe B,5,2024-Q1,SS,PRS,good\n'
            'SPE110000003,Shoe C,5,2024-Q1,SS,PRS,good\n'
        )
        response = self.client.post('/api/items/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        results = response.data['results']
        self.assertEqual(results['success'], 1)
        self.assertEqual(results['failed'], 2)
        self.assertEqual(results['errors'][0]['row'], 3)
        self.assertEqual(results['errors'][1]['error'], 'Product code already exists')

        item = Item.objects.get(product_code='SPE110000001')
        self.assertEqual(item.status, 'pending_approval')
        self.assertTrue(ItemRequest.objects.filter(item=item, status='pending').exists())

    def test_import_missing_columns(self):
        """Test an upload without the required headers is rejected"""
        upload = SimpleUploadedFile('items.csv', b'Product Code\nSPE110000001\n', content_type='text/csv')
        response = self.client.post('/api/items/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Missing required columns', response.data['error'])

    def test_import_unsupported_file(self):
        """Test non-spreadsheet uploads are rejected"""
        upload = SimpleUploadedFile('items.txt', b'hello', content_type='text/plain')
        response = self.client.post('/api/items/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_export_xlsx(self):
        """Test the export is a workbook with one row per item"""
        TestDataFactory.create_item(product_code='SPE110000001')
        response = self.client.get('/api/items/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        workbook = openpyxl.load_workbook(io.BytesIO(response.content))
        rows = list(workbook.active.iter_rows(values_only=True))
        self.assertEqual(rows[0][0], 'Product Code')
        self.assertEqual(rows[1][0], 'SPE110000001')
        self.assertEqual(rows[1][2], 'Specs')

    def test_export_csv(self):
        """Test the CSV export"""
        TestDataFactory.create_item(product_code='SPE110000001')
        response = self.client.get('/api/items/export/', {'format': 'csv'})
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('SPE110000001', response.content.decode())

    def test_import_template(self):
        """Test the template download lists the import columns"""
        response = self.client.get('/api/items/import/template/', {'format': 'csv'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.content.decode().startswith('Product Code,Description'))
