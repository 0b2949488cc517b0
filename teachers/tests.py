import re
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from kombu.exceptions import OperationalError

from academics.models import SchoolClass
from .credentials import (
    generate_access_id, generate_teacher_credentials, generate_temp_password,
    generate_username_from_name,
)
from .forms import TeacherForm

User = get_user_model()


class CredentialGenerationTests(TestCase):
    """Tests for generated teacher credentials."""

    def test_first_access_id(self):
        """Test numbering starts at TCH001."""
        self.assertEqual(generate_access_id(), 'TCH001')

    def test_access_id_follows_highest(self):
        """Test the next id is one past the highest in use."""
        User.objects.create_teacher('a1234', access_id='TCH001')
        User.objects.create_teacher('b1234', access_id='TCH007')
        self.assertEqual(generate_access_id(), 'TCH008')

    def test_username_shape(self):
        """Test four letters then 4 to 6 digits."""
        for _ in range(20):
            username = generate_username_from_name('Meera Nair')
            self.assertRegex(username, r'^meer\d{4,6}$')

    def test_short_name_padded(self):
        """Test short or non-letter names are padded with x."""
        self.assertRegex(generate_username_from_name('Al-2'), r'^alxx\d{4,6}$')
        self.assertRegex(generate_username_from_name(''), r'^xxxx\d{4,6}$')

    def test_username_skips_taken(self):
        """Test a taken username is never returned."""
        User.objects.create_teacher('meer1234')
        with mock.patch('teachers.credentials.secrets.randbelow', side_effect=[0, 1234, 0, 4321]):
            self.assertEqual(generate_username_from_name('Meera'), 'meer4321')

    def test_temp_password(self):
        """Test the password length and alphabet."""
        password = generate_temp_password()
        self.assertEqual(len(password), 8)
        self.assertTrue(re.fullmatch(r'[A-Za-z0-9]{8}', password))

    def test_bundle(self):
        """Test the credentials bundle has all three parts."""
        credentials = generate_teacher_credentials('Meera')
        self.assertEqual(set(credentials), {'access_id', 'username', 'password'})


class TeacherFormTests(TestCase):
    """Tests for TeacherForm validation."""

    def test_duplicate_username_rejected(self):
        """Test a taken username is a validation error."""
        User.objects.create_teacher('meera')
        form = TeacherForm({'name': 'Meera Two', 'username': 'MEERA', 'email': ''})
        self.assertFalse(form.is_valid())
        self.assertIn('username', form.errors)

    def test_blank_username_allowed_on_create(self):
        """Test the username may be left for generation."""
        form = TeacherForm({'name': 'Meera', 'username': '', 'email': ''})
        self.assertTrue(form.is_valid(), form.errors)


class TeacherViewTests(TestCase):
    """Tests for teacher management views."""

    def setUp(self):
        self.admin = User.objects.create_admin('principal', password='adminpass123')
        self.class3 = SchoolClass.objects.create(id='3', name='Class 3', sections=['A'])
        self.class4 = SchoolClass.objects.create(id='4', name='Class 4', sections=['A'])
        self.client.force_login(self.admin)

    def test_teacher_cannot_list(self):
        """Test teacher management is admin only."""
        teacher = User.objects.create_teacher('teacher1', password='teachpass123')
        self.client.force_login(teacher)
        response = self.client.get(reverse('teachers:index'))
        self.assertRedirects(response, reverse('core:index'), fetch_redirect_response=False)

    def test_index_lists_teachers_only(self):
        """Test admins are not listed as teachers."""
        User.objects.create_teacher('teacher1', name='Meera')
        response = self.client.get(reverse('teachers:index'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual([t.username for t in response.context['teachers']], ['teacher1'])

    @mock.patch('teachers.views.teachers.send_teacher_credentials')
    def test_create_generates_credentials(self, task):
        """Test a new teacher gets an access id, username and forced change."""
        response = self.client.post(reverse('teachers:teacher_create'), {
            'name': 'Meera Nair', 'username': '', 'email': 'meera@example.com',
            'assigned_classes': ['3', '4'],
        })
        self.assertRedirects(response, reverse('teachers:index'), fetch_redirect_response=False)
        teacher = User.objects.get(role='teacher')
        self.assertEqual(teacher.access_id, 'TCH001')
        self.assertRegex(teacher.username, r'^meer\d{4,6}$')
        self.assertTrue(teacher.must_change_password)
        self.assertEqual(set(teacher.get_assigned_class_ids()), {'3', '4'})
        task.delay.assert_called_once()
        self.assertEqual(task.delay.call_args[0][0], teacher.pk)

    @mock.patch('teachers.views.teachers.send_teacher_credentials')
    def test_credentials_shown_without_email(self, task):
        """Test the admin sees the password when there is no address."""
        response = self.client.post(reverse('teachers:teacher_create'), {
            'name': 'Meera Nair', 'username': 'meera', 'email': '',
        }, follow=True)
        task.delay.assert_not_called()
        text = ' '.join(str(m) for m in response.context['messages'])
        self.assertIn('temporary password', text)
        self.assertIn('meera', text)

    @mock.patch('teachers.views.teachers.send_teacher_credentials')
    def test_credentials_shown_when_queue_down(self, task):
        """Test the admin sees the password when celery is unreachable."""
        task.delay.side_effect = OperationalError('broker down')
        response = self.client.post(reverse('teachers:teacher_create'), {
            'name': 'Meera Nair', 'username': 'meera', 'email': 'meera@example.com',
        }, follow=True)
        text = ' '.join(str(m) for m in response.context['messages'])
        self.assertIn('temporary password', text)

    def test_duplicate_username_writes_nothing(self):
        """Test a duplicate username is rejected before any write."""
        User.objects.create_teacher('meera')
        response = self.client.post(reverse('teachers:teacher_create'), {
            'name': 'Meera Nair', 'username': 'meera', 'email': '',
        })
        self.assertEqual(response.status_code, 422)
        self.assertEqual(User.objects.filter(role='teacher').count(), 1)

    def test_edit_drops_class_teacher_role(self):
        """Test removing a class also clears the class teacher role."""
        teacher = User.objects.create_teacher('meera', name='Meera')
        teacher.assigned_classes.add(self.class3, self.class4)
        self.class3.assigned_teacher = teacher
        self.class3.save()

        response = self.client.post(reverse('teachers:teacher_edit', args=[teacher.pk]), {
            'name': 'Meera', 'username': 'meera', 'email': '', 'assigned_classes': ['4'],
        })
        self.assertEqual(response.status_code, 302)
        self.class3.refresh_from_db()
        self.assertIsNone(self.class3.assigned_teacher)
        self.assertEqual(teacher.get_assigned_class_ids(), ['4'])

    def test_delete_unassigns_classes(self):
        """Test deleting a teacher frees their classes."""
        teacher = User.objects.create_teacher('meera')
        self.class3.assigned_teacher = teacher
        self.class3.save()
        response = self.client.post(reverse('teachers:teacher_delete', args=[teacher.pk]))
        self.assertEqual(response.status_code, 302)
        self.assertFalse(User.objects.filter(pk=teacher.pk).exists())
        self.class3.refresh_from_db()
        self.assertIsNone(self.class3.assigned_teacher)

    def test_cannot_delete_admin_here(self):
        """Test only teacher accounts are reachable."""
        response = self.client.post(reverse('teachers:teacher_delete', args=[self.admin.pk]))
        self.assertEqual(response.status_code, 404)

    @mock.patch('teachers.views.teachers.send_teacher_credentials')
    def test_reset_password(self, task):
        """Test a reset issues a new password and forces a change."""
        teacher = User.objects.create_teacher('meera', password='oldpass123', email='m@example.com')
        self.client.post(reverse('teachers:teacher_reset_password', args=[teacher.pk]))
        teacher.refresh_from_db()
        self.assertFalse(teacher.check_password('oldpass123'))
        self.assertTrue(teacher.must_change_password)
        task.delay.assert_called_once()
