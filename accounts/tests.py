from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from academics.models import SchoolClass
from .session import SESSION_KEY, SessionContext

User = get_user_model()


class UserManagerTests(TestCase):
    """Tests for the custom UserManager."""

    def test_create_admin(self):
        """Test creating a school administrator."""
        user = User.objects.create_admin('principal', password='testpass123')
        self.assertEqual(user.role, User.Role.ADMIN)
        self.assertTrue(user.is_admin_role)
        self.assertFalse(user.is_teacher_role)
        self.assertTrue(user.check_password('testpass123'))

    def test_create_teacher(self):
        """Test creating a teacher."""
        user = User.objects.create_teacher('teacher1', password='testpass123', name='Meera')
        self.assertEqual(user.role, User.Role.TEACHER)
        self.assertTrue(user.is_teacher_role)
        self.assertEqual(str(user), 'Meera')

    def test_superuser_is_admin(self):
        """Test superusers get the admin role."""
        user = User.objects.create_superuser('root', 'root@example.com', 'testpass123')
        self.assertEqual(user.role, User.Role.ADMIN)
        self.assertEqual(user.role_label, 'Super Admin')


class SessionContextTests(TestCase):
    """Tests for the session context lifecycle."""

    def setUp(self):
        self.class3 = SchoolClass.objects.create(id='3', name='Class 3', sections=['A'])
        self.teacher = User.objects.create_teacher('teacher1', password='teachpass123')
        self.teacher.assigned_classes.add(self.class3)

    def test_for_user(self):
        """Test the context carries role and classes."""
        context = SessionContext.for_user(self.teacher)
        self.assertEqual(context.role, 'teacher')
        self.assertEqual(context.assigned_class_ids, ['3'])
        self.assertFalse(context.is_admin)

    def test_round_trip_dict(self):
        """Test the context survives storage in the session."""
        context = SessionContext.for_user(self.teacher)
        restored = SessionContext.from_dict(context.to_dict())
        self.assertEqual(restored.to_dict(), context.to_dict())

    @override_settings(SESSION_TIMEOUT_SECONDS=60)
    def test_expiry(self):
        """Test expiry compares last_seen with the timeout."""
        now = timezone.now().timestamp()
        context = SessionContext(self.teacher.pk, 'teacher', last_seen=now - 61)
        self.assertTrue(context.is_expired(now))
        context.last_seen = now - 30
        self.assertFalse(context.is_expired(now))

    def test_login_populates_context(self):
        """Test logging in stores the context."""
        response = self.client.post(reverse('accounts:login'), {
            'username': 'teacher1', 'password': 'teachpass123',
        })
        self.assertRedirects(response, reverse('core:index'), fetch_redirect_response=False)
        data = self.client.session[SESSION_KEY]
        self.assertEqual(data['user_id'], self.teacher.pk)
        self.assertEqual(data['assigned_class_ids'], ['3'])

    def test_invalid_login(self):
        """Test a wrong password keeps the user out."""
        response = self.client.post(reverse('accounts:login'), {
            'username': 'teacher1', 'password': 'wrong',
        })
        self.assertEqual(response.status_code, 200)
        self.assertNotIn(SESSION_KEY, self.client.session)

    def test_logout_clears_context(self):
        """Test logging out removes the context."""
        self.client.login(username='teacher1', password='teachpass123')
        self.client.post(reverse('accounts:logout'))
        self.assertNotIn(SESSION_KEY, self.client.session)
        self.assertNotIn('_auth_user_id', self.client.session)

    @override_settings(SESSION_TIMEOUT_SECONDS=60)
    def test_idle_session_is_logged_out(self):
        """Test the middleware signs out an expired session."""
        self.client.force_login(self.teacher)
        session = self.client.session
        session[SESSION_KEY] = SessionContext(
            self.teacher.pk, 'teacher', ['3'], last_seen=timezone.now().timestamp() - 120
        ).to_dict()
        session.save()

        response = self.client.get(reverse('core:index'))
        self.assertRedirects(response, reverse('accounts:login'), fetch_redirect_response=False)
        self.assertNotIn('_auth_user_id', self.client.session)

    def test_active_session_is_touched(self):
        """Test each request moves last_seen forward."""
        self.client.force_login(self.teacher)
        session = self.client.session
        session[SESSION_KEY] = SessionContext(
            self.teacher.pk, 'teacher', ['3'], last_seen=timezone.now().timestamp() - 10
        ).to_dict()
        session.save()
        before = session[SESSION_KEY]['last_seen']

        self.client.get(reverse('core:index'))
        self.assertGreater(self.client.session[SESSION_KEY]['last_seen'], before)

    def test_reassigned_classes_reach_session(self):
        """Test class changes made by an admin show up on the next request."""
        self.client.login(username='teacher1', password='teachpass123')
        class4 = SchoolClass.objects.create(id='4', name='Class 4', sections=['A'])
        self.teacher.assigned_classes.set([class4])

        response = self.client.get(reverse('core:index'))
        self.assertEqual(self.client.session[SESSION_KEY]['assigned_class_ids'], ['4'])
        self.assertContains(response, 'My classes: 4')


class ForcePasswordChangeTests(TestCase):
    """Tests for the forced password change on first login."""

    def setUp(self):
        self.teacher = User.objects.create_teacher(
            'teacher1', password='Tmp12345', must_change_password=True
        )
        self.client.force_login(self.teacher)

    def test_redirects_to_password_change(self):
        """Test every page sends the user to change their password."""
        response = self.client.get(reverse('core:index'))
        self.assertRedirects(response, reverse('accounts:password_change'), fetch_redirect_response=False)

    def test_change_clears_flag(self):
        """Test a successful change clears must_change_password."""
        response = self.client.post(reverse('accounts:password_change'), {
            'old_password': 'Tmp12345',
            'new_password1': 'Better-Pass-2024',
            'new_password2': 'Better-Pass-2024',
        })
        self.assertRedirects(response, reverse('core:index'), fetch_redirect_response=False)
        self.teacher.refresh_from_db()
        self.assertFalse(self.teacher.must_change_password)
        self.assertTrue(self.teacher.check_password('Better-Pass-2024'))


class AccountSettingsTests(TestCase):
    """Tests for changing username and password."""

    def setUp(self):
        self.user = User.objects.create_teacher('teacher1', password='teachpass123')
        User.objects.create_teacher('taken')
        self.client.force_login(self.user)
        self.url = reverse('accounts:settings')

    def test_page_renders(self):
        """Test the settings page loads."""
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 200)

    def test_change_username(self):
        """Test a valid username change."""
        response = self.client.post(self.url, {
            'action': 'username', 'username': 'meera', 'current_password': 'teachpass123',
        })
        self.assertRedirects(response, self.url, fetch_redirect_response=False)
        self.user.refresh_from_db()
        self.assertEqual(self.user.username, 'meera')

    def test_username_too_short(self):
        """Test usernames need three characters."""
        response = self.client.post(self.url, {
            'action': 'username', 'username': 'ab', 'current_password': 'teachpass123',
        })
        self.assertEqual(response.status_code, 422)

    def test_username_taken(self):
        """Test a taken username is refused regardless of case."""
        response = self.client.post(self.url, {
            'action': 'username', 'username': 'TAKEN', 'current_password': 'teachpass123',
        })
        self.assertEqual(response.status_code, 422)
        self.user.refresh_from_db()
        self.assertEqual(self.user.username, 'teacher1')

    def test_username_needs_current_password(self):
        """Test the current password is verified."""
        response = self.client.post(self.url, {
            'action': 'username', 'username': 'meera', 'current_password': 'wrong',
        })
        self.assertEqual(response.status_code, 422)

    def test_change_password(self):
        """Test a password change keeps the user signed in."""
        response = self.client.post(self.url, {
            'action': 'password',
            'old_password': 'teachpass123',
            'new_password1': 'Better-Pass-2024',
            'new_password2': 'Better-Pass-2024',
        })
        self.assertRedirects(response, self.url, fetch_redirect_response=False)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Better-Pass-2024'))
        self.assertEqual(self.client.get(self.url).status_code, 200)

    def test_wrong_current_password(self):
        """Test the current password must match."""
        response = self.client.post(self.url, {
            'action': 'password',
            'old_password': 'nope',
            'new_password1': 'Better-Pass-2024',
            'new_password2': 'Better-Pass-2024',
        })
        self.assertEqual(response.status_code, 422)
