"""
Tests for locations and boxes
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from backend.core.models import User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.locations.models import Location, Box


class LocationTests(TestCase):
    """Location CRUD and deletion guards"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.storage_master = TestDataFactory.create_user(role=User.ROLE_STORAGE_MASTER, department=self.department)
        self.client.authenticate_user(self.storage_master)

    def test_create_location(self):
        """Test a storage master can create a location"""
        response = self.client.post('/api/locations/', {'name': 'Rack A', 'description': 'Ground floor'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['box_count'], 0)
        self.assertTrue(Location.objects.filter(name='Rack A').exists())

    def test_create_location_forbidden_for_users(self):
        """Test regular users cannot create locations"""
        user = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        self.client.authenticate_user(user)
        response = self.client.post('/api/locations/', {'name': 'Rack B'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)

    def test_list_locations_with_box_count(self):
        """Test the list reports the number of boxes per location"""
        location = TestDataFactory.create_location(name='Rack C')
        TestDataFactory.create_box(location=location)
        TestDataFactory.create_box(location=location)
        response = self.client.get('/api/locations/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['box_count'], 2)

    def test_list_refreshes_after_create(self):
        """Test the cached list is invalidated when a location is added"""
        TestDataFactory.create_location(name='Rack D')
        self.assertEqual(len(self.client.get('/api/locations/').data), 1)
        TestDataFactory.create_location(name='Rack E')
        self.assertEqual(len(self.client.get('/api/locations/').data), 2)

    def test_delete_location_with_stock(self):
        """Test a location whose boxes hold stock cannot be deleted"""
        box = TestDataFactory.create_box()
        TestDataFactory.create_stock(box=box)
        response = self.client.delete(f'/api/locations/{box.location_id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_delete_location_removes_empty_boxes(self):
        """Test deleting a location also deletes its empty boxes"""
        box = TestDataFactory.create_box()
        response = self.client.delete(f'/api/locations/{box.location_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Box.objects.filter(pk=box.pk).exists())


class BoxTests(TestCase):
    """Box CRUD"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_user()
        self.client.authenticate_user(self.admin)
        self.location = TestDataFactory.create_location()

    def test_create_box(self):
        """Test creating a box in a location"""
        response = self.client.post('/api/boxes/', {'box_number': 'B-001', 'location': self.location.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['location_name'], self.location.name)

    def test_duplicate_box_number_in_location(self):
        """Test box numbers are unique within a location"""
        TestDataFactory.create_box(location=self.location, box_number='B-002')
        response = self.client.post('/api/boxes/', {'box_number': 'B-002', 'location': self.location.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_filter_boxes_by_location(self):
        """Test listing boxes of one location"""
        TestDataFactory.create_box(location=self.location)
        TestDataFactory.create_box()
        response = self.client.get('/api/boxes/', {'location': self.location.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_invalid_location_filter(self):
        """Test a non-numeric location filter is rejected"""
        response = self.client.get('/api/boxes/', {'location': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_box_with_stock(self):
        """Test a box holding stock cannot be deleted"""
        box = TestDataFactory.create_box(location=self.location)
        TestDataFactory.create_stock(box=box)
        response = self.client.delete(f'/api/boxes/{box.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_delete_empty_box(self):
        """Test an empty box can be deleted"""
        box = TestDataFactory.create_box(location=self.location)
        response = self.client.delete(f'/api/boxes/{box.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
