"""
Test suite for Core module
Tests: authentication, users, KRA access flags and audit logs
"""
from django.contrib.auth.models import Group
from django.test import TestCase
from rest_framework import status
from etims_pos.core.models import AuditLog
from etims_pos.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from etims_pos.core.utils import can_manage_kra, create_audit_log


class AuthAPITests(TestCase):
    """Test login, staff account creation and the current-user endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_no_self_registration(self):
        data = {
            'username': 'cashier1',
            'password': 'Str0ng-passw0rd!',
            'password_confirm': 'Str0ng-passw0rd!',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_admin_creates_staff_account(self):
        admin = TestDataFactory.create_user(is_staff=True)
        self.client.authenticate_user(admin)
        data = {
            'username': 'cashier1',
            'email': 'cashier1@test.com',
            'password': 'Str0ng-passw0rd!',
            'password_confirm': 'Str0ng-passw0rd!',
        }
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['username'], 'cashier1')

    def test_staff_account_password_mismatch(self):
        admin = TestDataFactory.create_user(is_staff=True)
        self.client.authenticate_user(admin)
        data = {
            'username': 'cashier2',
            'password': 'Str0ng-passw0rd!',
            'password_confirm': 'something-else',
        }
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login(self):
        TestDataFactory.create_user(username='waiter', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {'username': 'waiter', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('refresh', response.data)

    def test_login_inactive_user(self):
        user = TestDataFactory.create_user(username='gone', password='testpass123')
        user.is_active = False
        user.save()
        response = self.client.post('/api/v1/auth/login/', {'username': 'gone', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_reports_kra_access(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['can_manage_kra'])

        user.groups.add(Group.objects.create(name='Manager'))
        response = self.client.get('/api/v1/auth/me/')
        self.assertTrue(response.data['can_manage_kra'])


class KraAccessTests(TestCase):
    """Test who may configure the KRA device"""

    def test_staff_and_superuser(self):
        self.assertTrue(can_manage_kra(TestDataFactory.create_user(is_staff=True)))
        self.assertTrue(can_manage_kra(TestDataFactory.create_user(is_superuser=True)))

    def test_group_membership(self):
        user = TestDataFactory.create_user()
        self.assertFalse(can_manage_kra(user))
        user.groups.add(Group.objects.create(name='Admin'))
        self.assertTrue(can_manage_kra(user))

    def test_anonymous(self):
        self.assertFalse(can_manage_kra(None))


class UserAPITests(TestCase):
    """Test admin-only user management"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_non_admin_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_lists_users(self):
        admin = TestDataFactory.create_user(is_staff=True)
        TestDataFactory.create_user()
        self.client.authenticate_user(admin)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)


class AuditLogTests(TestCase):
    """Test audit log creation and visibility"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_audit_log_requires_fields(self):
        self.assertIsNone(create_audit_log(user=self.user, action='kra_sale'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_create_audit_log(self):
        log = create_audit_log(user=self.user, action='kra_sale', model_name='SalesInvoice', object_id=5,
                               object_reference='42', changes={'status': 'success'})
        self.assertEqual(log.object_id, '5')
        self.assertEqual(log.user, self.user)

    def test_users_see_only_their_logs(self):
        create_audit_log(user=self.user, action='kra_sale', model_name='SalesInvoice', object_id=1)
        create_audit_log(user=self.other, action='kra_refund', model_name='SalesInvoice', object_id=2)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([log['action'] for log in response.data['results']], ['kra_sale'])

    def test_filter_by_action(self):
        staff = TestDataFactory.create_user(is_staff=True)
        create_audit_log(user=self.user, action='kra_sale', model_name='SalesInvoice', object_id=1)
        create_audit_log(user=self.other, action='kra_refund', model_name='SalesInvoice', object_id=2)
        self.client.authenticate_user(staff)
        response = self.client.get('/api/v1/audit-logs/?action=kra_refund')
        self.assertEqual(response.data['count'], 1)

    def test_detail_of_other_user_forbidden(self):
        log = create_audit_log(user=self.other, action='kra_sale', model_name='SalesInvoice', object_id=1)
        response = self.client.get(f'/api/v1/audit-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_fiscal_audit_trail(self):
        create_audit_log(user=self.user, action='kra_sale', model_name='SalesInvoice', object_id=1,
                         object_reference='42')
        create_audit_log(user=self.user, action='kra_sale_retry', model_name='SalesInvoice', object_id=1,
                         object_reference='42')
        create_audit_log(user=self.user, action='order_create', model_name='Order', object_id=3,
                         object_reference='42')
        response = self.client.get('/api/v1/audit-logs/fiscal/42/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([log['action'] for log in response.data['results']], ['kra_sale', 'kra_sale_retry'])
        self.assertTrue(all(log['is_fiscal'] for log in response.data['results']))
