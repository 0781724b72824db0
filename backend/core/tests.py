"""
Tests for authentication, users, departments and audit logs
"""
from django.test import TestCase
from rest_framework import status
from backend.core.models import AuditLog, User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import short_reference


class AuthTests(TestCase):
    """Login and the current-user endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.user = TestDataFactory.create_user(
            username='storage_one', role=User.ROLE_STORAGE_MASTER, department=self.department
        )

    def test_login_returns_tokens_and_user(self):
        """Test login returns access/refresh tokens and the user payload"""
        response = self.client.post('/api/auth/login/', {'username': 'storage_one', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], User.ROLE_STORAGE_MASTER)

    def test_login_wrong_password(self):
        """Test login with a wrong password is rejected"""
        response = self.client.post('/api/auth/login/', {'username': 'storage_one', 'password': 'nope'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_exposes_capabilities(self):
        """Test /auth/me/ returns role capabilities"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['can_manage_storage'])
        self.assertTrue(response.data['can_move_stock'])
        self.assertFalse(response.data['is_admin'])
        self.assertFalse(response.data['can_manage_items'])

    def test_me_requires_authentication(self):
        """Test anonymous access is refused"""
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_health_is_public(self):
        """Test the health endpoint needs no token"""
        response = self.client.get('/api/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ok')


class UserManagementTests(TestCase):
    """User CRUD is reserved to superadmins"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_user(username='admin_user')
        self.department = TestDataFactory.create_department()
        self.client.authenticate_user(self.admin)

    def test_create_user(self):
        """Test creating a department user"""
        data = {
            'username': 'new_user',
            'email': 'new_user@test.com',
            'name': 'New User',
            'password': 'Str0ng-pass-123',
            'password_confirm': 'Str0ng-pass-123',
            'role': User.ROLE_USER,
            'department': self.department.id,
        }
        response = self.client.post('/api/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['department_name'], self.department.name)
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='User').exists())

    def test_create_user_requires_department(self):
        """Test non-admin roles must belong to a department"""
        data = {
            'username': 'no_dept',
            'email': 'no_dept@test.com',
            'password': 'Str0ng-pass-123',
            'password_confirm': 'Str0ng-pass-123',
            'role': User.ROLE_MANAGER,
        }
        response = self.client.post('/api/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_password_mismatch(self):
        """Test mismatching passwords are rejected"""
        data = {
            'username': 'mismatch',
            'email': 'mismatch@test.com',
            'password': 'Str0ng-pass-123',
            'password_confirm': 'Other-pass-456',
            'role': User.ROLE_SUPERADMIN,
        }
        response = self.client.post('/api/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_users_filtered_by_role(self):
        """Test filtering the user list by role"""
        TestDataFactory.create_user(role=User.ROLE_MANAGER, department=self.department)
        response = self.client.get('/api/users/', {'role': User.ROLE_MANAGER})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_non_admin_cannot_manage_users(self):
        """Test a regular user gets 403 with an error body"""
        regular = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        self.client.authenticate_user(regular)
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)

    def test_cannot_delete_self(self):
        """Test an admin cannot delete their own account"""
        response = self.client.delete(f'/api/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_user(self):
        """Test deleting another user"""
        other = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        response = self.client.delete(f'/api/users/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=other.id).exists())


class DepartmentTests(TestCase):
    """Department listing and deletion rules"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_user()
        self.client.authenticate_user(self.admin)

    def test_list_includes_user_count(self):
        """Test departments report how many users they hold"""
        department = TestDataFactory.create_department(name='Marketing')
        TestDataFactory.create_user(role=User.ROLE_USER, department=department)
        response = self.client.get('/api/departments/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['name'], 'Marketing')
        self.assertEqual(response.data[0]['user_count'], 1)

    def test_delete_department_with_users(self):
        """Test deleting a department that still has users is refused"""
        department = TestDataFactory.create_department()
        TestDataFactory.create_user(role=User.ROLE_USER, department=department)
        response = self.client.delete(f'/api/departments/{department.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_delete_empty_department(self):
        """Test deleting an empty department"""
        department = TestDataFactory.create_department()
        response = self.client.delete(f'/api/departments/{department.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_only_admin_creates_departments(self):
        """Test non-admins cannot create departments"""
        department = TestDataFactory.create_department()
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER, department=department)
        self.client.authenticate_user(manager)
        response = self.client.post('/api/departments/', {'name': 'Finance'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuditLogTests(TestCase):
    """Audit log visibility"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_user()
        self.department = TestDataFactory.create_department()
        self.user = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        AuditLog.objects.create(user=self.admin, action='create', model_name='Location', object_id='1')
        AuditLog.objects.create(user=self.user, action='borrow_create', model_name='BorrowRequest', object_id='2')

    def test_admin_sees_all_logs(self):
        """Test superadmins see every entry"""
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/audit-logs/')
        self.assertEqual(len(response.data), 2)

    def test_user_sees_own_logs(self):
        """Test other users only see their own entries"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/audit-logs/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'borrow_create')


class UtilsTests(TestCase):
    def test_short_reference_length(self):
        """Test short references fit the 10 character column"""
        reference = short_reference()
        self.assertLessEqual(len(reference), 10)
        self.assertNotEqual(reference, short_reference())
