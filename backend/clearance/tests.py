"""
Test suite for clearance
Tests: bulk clearance, reverts, clearance import, form lifecycle and cleared item snapshots
"""
import io
import shutil
import tempfile

import openpyxl
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status
from backend.core.models import User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.clearance.models import ItemClearance, ClearanceForm, ClearedItem
from backend.inventory import services
from backend.inventory.models import ItemStock, StockMovement
from backend.inventory.services import item_stock_totals


def _xlsx_upload(rows, name='clearance.xlsx'):
    workbook = openpyxl.Workbook()
    for row in rows:
        workbook.active.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return SimpleUploadedFile(name, buffer.getvalue(),
                              content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')


class BulkClearanceTests(TestCase):
    """Moving items into clearance and back"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.storage_master = TestDataFactory.create_user(role=User.ROLE_STORAGE_MASTER, department=self.department)
        self.client.authenticate_user(self.storage_master)
        self.box = TestDataFactory.create_box()
        self.item, _ = TestDataFactory.create_pending_item(total_stock=2)
        self.stock = TestDataFactory.create_stock(item=self.item, box=self.box, in_storage=5)

    def test_reasons(self):
        """Test the clearance reason catalog"""
        response = self.client.get('/api/clearance/reasons/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('seeding', [reason['id'] for reason in response.data])

    def test_bulk_clearance_takes_pending_first(self):
        """Test bulk clearance consumes pending units before storage"""
        response = self.client.post('/api/items/bulk-clearance/', {
            'items': [{'product_code': self.item.product_code, 'quantity': 3}],
            'reason': 'damaged',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        result = response.data['results'][0]
        self.assertEqual(result['pending_cleared'], 2)
        self.assertEqual(result['in_storage_cleared'], 1)
        self.assertEqual(len(response.data['reference']), 10)

        record = ItemClearance.objects.get(item=self.item)
        self.assertEqual(record.quantity, 3)
        self.assertEqual(record.status, 'completed')
        self.assertEqual(item_stock_totals(self.item)['in_clearance'], 3)

    def test_bulk_clearance_partial_errors(self):
        """Test unknown items and excessive quantities are reported"""
        response = self.client.post('/api/items/bulk-clearance/', {
            'items': [
                {'product_code': self.item.product_code, 'quantity': 1},
                {'product_code': 'SPE110099999', 'quantity': 1},
                {'product_code': self.item.product_code, 'quantity': 50},
            ],
            'reason': 'obsolete',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(len(response.data['errors']), 2)

    def test_bulk_clearance_nothing_succeeds(self):
        """Test a batch without any success answers 400"""
        response = self.client.post('/api/items/bulk-clearance/', {
            'items': [{'product_code': self.item.product_code, 'quantity': 50}],
            'reason': 'obsolete',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_clearance_requires_reason(self):
        """Test a reason is required"""
        response = self.client.post('/api/items/bulk-clearance/', {
            'items': [{'product_code': self.item.product_code, 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_regular_user_forbidden(self):
        """Test regular users cannot move items to clearance"""
        user = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        self.client.authenticate_user(user)
        response = self.client.post('/api/items/bulk-clearance/', {
            'items': [{'product_code': self.item.product_code, 'quantity': 1}], 'reason': 'other',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_clearance_item_list(self):
        """Test only items with clearance units are listed"""
        TestDataFactory.create_stock(in_storage=3)
        services.move_to_clearance(self.item, 2, self.storage_master, include_pending=False)
        ItemClearance.objects.create(item=self.item, quantity=2, reason='damaged', reference='ABC')
        response = self.client.get('/api/items/clearance/')
        self.assertEqual(response.data['count'], 1)
        entry = response.data['results'][0]
        self.assertEqual(entry['stock_totals']['in_clearance'], 2)
        self.assertEqual(entry['latest_clearance']['reference'], 'ABC')

    def test_revert_from_clearance(self):
        """Test reverting returns units to storage with a negative record"""
        services.move_to_clearance(self.item, 3, self.storage_master, include_pending=False)
        response = self.client.post('/api/items/revert-from-clearance/', {
            'product_code': self.item.product_code, 'quantity': 2, 'notes': 'Repaired',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.in_clearance, 1)
        self.assertEqual(self.stock.in_storage, 4)
        record = ItemClearance.objects.get(status='reverted')
        self.assertEqual(record.quantity, -2)

    def test_revert_reserved_units(self):
        """Test units claimed by an open form cannot be reverted"""
        services.move_to_clearance(self.item, 3, self.storage_master, include_pending=False)
        self.stock.refresh_from_db()
        TestDataFactory.create_clearance_form(self.storage_master, lines=[(self.stock, 2)])
        response = self.client.post('/api/items/revert-from-clearance/', {
            'product_code': self.item.product_code, 'quantity': 2,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Only 1 units', response.data['error'])

    def test_bulk_revert(self):
        """Test bulk revert moves every unreserved unit back and lists unknown codes"""
        services.move_to_clearance(self.item, 4, self.storage_master)
        ItemClearance.objects.create(item=self.item, quantity=4, reason='damaged', reference='REF1')
        response = self.client.post('/api/items/clearance/bulk-revert/', {
            'product_codes': [self.item.product_code, 'SPE110099999'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reverted'][0]['quantity'], 4)
        self.assertEqual(response.data['non_existing_product_codes'], ['SPE110099999'])
        self.assertEqual(item_stock_totals(self.item)['in_clearance'], 0)
        self.assertFalse(ItemClearance.objects.filter(item=self.item, status='completed').exists())

    def test_bulk_revert_keeps_records_while_units_reserved(self):
        """Test clearance records stay completed while an open form holds units"""
        services.move_to_clearance(self.item, 4, self.storage_master)
        self.stock.refresh_from_db()
        ItemClearance.objects.create(item=self.item, quantity=4, reason='damaged', reference='REF1')
        TestDataFactory.create_clearance_form(self.storage_master, lines=[(self.stock, 2)])

        response = self.client.post('/api/items/clearance/bulk-revert/', {
            'product_codes': [self.item.product_code],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reverted'][0]['quantity'], 2)
        self.assertEqual(item_stock_totals(self.item)['in_clearance'], 2)
        self.assertTrue(ItemClearance.objects.filter(item=self.item, reference='REF1', status='completed').exists())

class ClearanceSpreadsheetTests(TestCase):
    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_user()
        self.client.authenticate_user(self.admin)
        self.box = TestDataFactory.create_box()
        self.item = TestDataFactory.create_item(product_code='SPE110000001')
        self.stock = TestDataFactory.create_stock(item=self.item, box=self.box, in_storage=6)

    def test_import_sets_quantities(self):
        """Test the import raises and lowers clearance quantities to the given values"""
        response = self.client.post('/api/clearance-items/import/', {'file': _xlsx_upload([
            ['Product Code', 'In Clearance'],
            ['SPE110000001', 4],
            ['SPE110099999', 1],
            ['SPE110000001', 'many'],
        ])}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['results'][0]['difference'], 4)
        self.assertEqual(len(response.data['errors']), 2)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.in_clearance, 4)
        self.assertTrue(StockMovement.objects.filter(reference_type='clearance_import',
                                                     movement_type='adjustment').exists())

        response = self.client.post('/api/clearance-items/import/', {'file': _xlsx_upload([
            ['Product Code', 'In Clearance'],
            ['SPE110000001', 1],
        ])}, format='multipart')
        self.assertEqual(response.data['results'][0]['difference'], -3)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.in_clearance, 1)
        self.assertEqual(self.stock.in_storage, 5)

    def test_import_rejects_csv(self):
        """Test the clearance import only accepts xlsx"""
        upload = SimpleUploadedFile('clearance.csv', b'Product Code,In Clearance\nSPE110000001,1\n',
                                    content_type='text/csv')
        response = self.client.post('/api/clearance-items/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_export(self):
        """Test the export lists clearance stock with its box"""
        services.move_to_clearance(self.item, 2, self.admin)
        response = self.client.get('/api/clearance-items/export/')
        workbook = openpyxl.load_workbook(io.BytesIO(response.content))
        rows = list(workbook.active.iter_rows(values_only=True))
        self.assertEqual(rows[1][0], 'SPE110000001')
        self.assertEqual(rows[1][8], 2)
        self.assertEqual(rows[1][9], self.box.box_number)


class ClearanceFormTests(TestCase):
    """Form lifecycle: draft, submission, approval, processing"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.storage_master = TestDataFactory.create_user(role=User.ROLE_STORAGE_MASTER, department=self.department)
        self.approver = TestDataFactory.create_user(role=User.ROLE_STORAGE_MASTER_MANAGER, department=self.department)
        self.client.authenticate_user(self.storage_master)
        self.box = TestDataFactory.create_box()
        self.item = TestDataFactory.create_item()
        self.stock = TestDataFactory.create_stock(item=self.item, box=self.box, in_storage=2, in_clearance=5)

    def tearDown(self):
        shutil.rmtree(self.media_root, ignore_errors=True)

    def _create_form(self, quantity=3):
        return self.client.post('/api/clearance-forms/', {
            'title': 'Q1 write-off',
            'period': '2024-Q1',
            'items': [{'product_code': self.item.product_code, 'stock_id': self.stock.id, 'quantity': quantity}],
        }, format='json')

    def test_create_form(self):
        """Test creating a draft form with a generated number"""
        response = self._create_form()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'draft')
        self.assertRegex(response.data['form_number'], r'^CLR-\d{6}$')
        self.assertEqual(response.data['items'][0]['quantity'], 3)
        self.assertEqual(response.data['total_quantity'], 3)

    def test_create_form_caps_unclaimed_units(self):
        """Test a second form only gets the units not claimed yet"""
        self._create_form(quantity=4)
        response = self._create_form(quantity=4)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['items'][0]['quantity'], 1)
        response = self._create_form(quantity=1)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_form_wrong_item(self):
        """Test the stock row must belong to the given item"""
        other = TestDataFactory.create_item()
        response = self.client.post('/api/clearance-forms/', {
            'title': 'Mismatch',
            'items': [{'product_code': other.product_code, 'stock_id': self.stock.id, 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_full_lifecycle(self):
        """Test submit, approve and process writes units off with snapshots"""
        form_id = self._create_form(quantity=5).data['id']

        response = self.client.post('/api/clearance-forms/submit-for-approval/', {'form_id': form_id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['form']['status'], 'pending_approval')

        self.client.authenticate_user(self.approver)
        response = self.client.put(f'/api/clearance-forms/{form_id}/', {'action': 'approve'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['form']['status'], 'approved')

        response = self.client.put(f'/api/clearance-forms/{form_id}/', {'action': 'process'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['form']['status'], 'processed')

        self.stock.refresh_from_db()
        self.assertEqual(self.stock.in_clearance, 0)
        self.assertEqual(self.stock.in_storage, 2)

        cleared = ClearedItem.objects.get(form_id=form_id)
        self.assertEqual(cleared.product_code, self.item.product_code)
        self.assertEqual(cleared.quantity, 5)
        self.assertEqual(cleared.box_number, self.box.box_number)
        self.assertEqual(cleared.location_name, self.box.location.name)

        listing = self.client.get('/api/cleared-items/', {'form': form_id})
        self.assertEqual(listing.data['count'], 1)

    def test_revert_leaves_reserved_row_for_processing(self):
        """Test reverting takes units from unreserved rows so the form can still be processed"""
        other_row = TestDataFactory.create_stock(item=self.item, box=TestDataFactory.create_box(),
                                                 in_storage=0, in_clearance=5)
        form_id = self._create_form(quantity=5).data['id']

        response = self.client.post('/api/items/revert-from-clearance/', {
            'product_code': self.item.product_code, 'quantity': 5,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.stock.refresh_from_db()
        other_row.refresh_from_db()
        self.assertEqual(self.stock.in_clearance, 5)
        self.assertEqual(other_row.in_clearance, 0)
        self.assertEqual(other_row.in_storage, 5)

        self.client.post('/api/clearance-forms/submit-for-approval/', {'form_id': form_id}, format='json')
        self.client.authenticate_user(self.approver)
        self.client.put(f'/api/clearance-forms/{form_id}/', {'action': 'approve'}, format='json')
        response = self.client.put(f'/api/clearance-forms/{form_id}/', {'action': 'process'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['form']['status'], 'processed')

    def test_process_requires_approval(self):
        """Test draft forms cannot be processed"""
        form_id = self._create_form().data['id']
        response = self.client.put(f'/api/clearance-forms/{form_id}/', {'action': 'process'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_storage_master_cannot_approve(self):
        """Test only storage master managers approve forms"""
        form = TestDataFactory.create_clearance_form(self.storage_master, lines=[(self.stock, 1)],
                                                     status='pending_approval')
        response = self.client.put(f'/api/clearance-forms/{form.id}/', {'action': 'approve'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_reject_releases_units(self):
        """Test rejecting a form returns its units to storage"""
        form = TestDataFactory.create_clearance_form(self.storage_master, lines=[(self.stock, 3)],
                                                     status='pending_approval')
        self.client.authenticate_user(self.approver)
        response = self.client.put(f'/api/clearance-forms/{form.id}/', {'action': 'reject', 'reason': 'Wrong period'},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.in_clearance, 2)
        self.assertEqual(self.stock.in_storage, 5)
        form.refresh_from_db()
        self.assertEqual(form.rejection_reason, 'Wrong period')

    def test_reject_requires_reason(self):
        """Test rejection needs a reason"""
        form = TestDataFactory.create_clearance_form(self.storage_master, lines=[(self.stock, 1)],
                                                     status='pending_approval')
        self.client.authenticate_user(self.approver)
        response = self.client.put(f'/api/clearance-forms/{form.id}/', {'action': 'reject'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_draft(self):
        """Test deleting a draft releases its units"""
        form_id = self._create_form(quantity=2).data['id']
        response = self.client.delete(f'/api/clearance-forms/{form_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ClearanceForm.objects.filter(pk=form_id).exists())
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.in_storage, 4)

    def test_only_creator_submits(self):
        """Test other users cannot submit someone else's draft"""
        form = TestDataFactory.create_clearance_form(self.approver, lines=[(self.stock, 1)])
        response = self.client.post('/api/clearance-forms/submit-for-approval/', {'form_id': form.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_forms(self):
        """Test the form list reports line counts"""
        TestDataFactory.create_clearance_form(self.storage_master, lines=[(self.stock, 1), (self.stock, 2)],
                                              form_number='CLR-000001')
        response = self.client.get('/api/clearance-forms/', {'search': '000001'})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['item_count'], 2)
        self.assertEqual(response.data['results'][0]['total_quantity'], 3)

    def test_upload_scanned_form(self):
        """Test attaching a PDF to an approved form"""
        form = TestDataFactory.create_clearance_form(self.storage_master, lines=[(self.stock, 1)], status='approved')
        upload = SimpleUploadedFile('signed.pdf', b'%PDF-1.4 test', content_type='application/pdf')
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post(f'/api/clearance-forms/{form.id}/upload/', {'file': upload},
                                        format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        form.refresh_from_db()
        self.assertTrue(form.scanned_form.name.endswith('.pdf'))

    def test_upload_rejects_other_types(self):
        """Test non image/PDF uploads are refused"""
        form = TestDataFactory.create_clearance_form(self.storage_master, lines=[(self.stock, 1)], status='approved')
        upload = SimpleUploadedFile('signed.txt', b'hello', content_type='text/plain')
        response = self.client.post(f'/api/clearance-forms/{form.id}/upload/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(SCANNED_FORM_MAX_SIZE=4)
    def test_upload_size_limit(self):
        """Test oversized uploads are refused"""
        form = TestDataFactory.create_clearance_form(self.storage_master, lines=[(self.stock, 1)], status='approved')
        upload = SimpleUploadedFile('signed.pdf', b'%PDF-1.4 test', content_type='application/pdf')
        response = self.client.post(f'/api/clearance-forms/{form.id}/upload/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_upload_on_draft(self):
        """Test drafts cannot carry a scanned form"""
        form = TestDataFactory.create_clearance_form(self.storage_master, lines=[(self.stock, 1)])
        upload = SimpleUploadedFile('signed.pdf', b'%PDF-1.4 test', content_type='application/pdf')
        response = self.client.post(f'/api/clearance-forms/{form.id}/upload/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
