from datetime import timedelta
from unittest import mock
from smtplib import SMTPException

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from .models import Announcement
from .tasks import deliver_teacher_credentials, send_teacher_credentials

User = get_user_model()


class AnnouncementOrderingTest(TestCase):
    """Tests for the priority ordering used on the dashboard."""

    def test_priority_then_recency(self):
        """Test high comes first and newer wins within a priority."""
        low = Announcement.objects.create(title='Low', content='x', priority='low')
        old_high = Announcement.objects.create(title='Old high', content='x', priority='high')
        Announcement.objects.filter(pk=old_high.pk).update(created_at=timezone.now() - timedelta(days=2))
        new_high = Announcement.objects.create(title='New high', content='x', priority='high')
        medium = Announcement.objects.create(title='Medium', content='x', priority='medium')

        ordered = list(Announcement.objects.by_priority())
        self.assertEqual(ordered, [new_high, old_high, medium, low])

    def test_active_filter(self):
        """Test hidden announcements are left out."""
        Announcement.objects.create(title='Shown', content='x')
        Announcement.objects.create(title='Hidden', content='x', is_active=False)
        self.assertEqual([a.title for a in Announcement.objects.active()], ['Shown'])


class AnnouncementViewTest(TestCase):
    """Tests for announcement management views."""

    def setUp(self):
        self.admin = User.objects.create_admin('principal', password='adminpass123')
        self.teacher = User.objects.create_teacher('teacher1', password='teachpass123')

    def test_teacher_redirected(self):
        """Test teachers cannot manage announcements."""
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('communications:index'))
        self.assertRedirects(response, reverse('core:index'), fetch_redirect_response=False)

    def test_create(self):
        """Test creating records the author."""
        self.client.force_login(self.admin)
        response = self.client.post(reverse('communications:announcement_create'), {
            'title': 'Sports day', 'content': 'Friday', 'priority': 'high', 'is_active': 'on',
        })
        self.assertEqual(response.status_code, 302)
        announcement = Announcement.objects.get()
        self.assertEqual(announcement.created_by, self.admin)
        self.assertTrue(announcement.is_active)

    def test_create_invalid(self):
        """Test a blank title is rejected with 422."""
        self.client.force_login(self.admin)
        response = self.client.post(reverse('communications:announcement_create'), {
            'title': '  ', 'content': 'Friday', 'priority': 'high',
        })
        self.assertEqual(response.status_code, 422)
        self.assertFalse(Announcement.objects.exists())

    def test_htmx_create_refreshes(self):
        """Test HTMX posts answer with HX-Refresh."""
        self.client.force_login(self.admin)
        response = self.client.post(
            reverse('communications:announcement_create'),
            {'title': 'Exams', 'content': 'Soon', 'priority': 'low'},
            HTTP_HX_REQUEST='true',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['HX-Refresh'], 'true')

    def test_toggle(self):
        """Test toggling hides and shows an announcement."""
        announcement = Announcement.objects.create(title='Notice', content='x')
        self.client.force_login(self.admin)
        self.client.post(reverse('communications:announcement_toggle', args=[announcement.pk]))
        announcement.refresh_from_db()
        self.assertFalse(announcement.is_active)

    def test_delete(self):
        """Test deleting an announcement."""
        announcement = Announcement.objects.create(title='Notice', content='x')
        self.client.force_login(self.admin)
        self.client.post(reverse('communications:announcement_delete', args=[announcement.pk]))
        self.assertFalse(Announcement.objects.exists())


@override_settings(EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend')
class TeacherCredentialsEmailTest(TestCase):
    """Tests for the credentials email."""

    def setUp(self):
        self.teacher = User.objects.create_teacher(
            'meer1234', password='x', name='Meera', email='meera@example.com', access_id='TCH001'
        )

    def test_email_contains_credentials(self):
        """Test the mail carries username, access id and password."""
        self.assertTrue(deliver_teacher_credentials(self.teacher, 'Tmp12345'))
        self.assertEqual(len(mail.outbox), 1)
        body = mail.outbox[0].body
        self.assertIn('meer1234', body)
        self.assertIn('TCH001', body)
        self.assertIn('Tmp12345', body)
        self.assertEqual(mail.outbox[0].to, ['meera@example.com'])

    def test_no_email_address(self):
        """Test nothing is sent without an address."""
        self.teacher.email = ''
        self.assertFalse(deliver_teacher_credentials(self.teacher, 'Tmp12345'))
        self.assertEqual(len(mail.outbox), 0)

    def test_smtp_failure_is_reported(self):
        """Test SMTP errors are logged and reported as not sent."""
        with mock.patch('communications.tasks.send_mail', side_effect=SMTPException('down')):
            with self.assertLogs('communications.tasks', level='ERROR'):
                self.assertFalse(deliver_teacher_credentials(self.teacher, 'Tmp12345'))

    def test_task_sends(self):
        """Test the celery task delivers the mail when run eagerly."""
        result = send_teacher_credentials.apply(args=[self.teacher.pk, 'Tmp12345'])
        self.assertTrue(result.get())
        self.assertEqual(len(mail.outbox), 1)

    def test_task_unknown_user(self):
        """Test a missing user is logged, not raised."""
        result = send_teacher_credentials.apply(args=[999999, 'Tmp12345'])
        self.assertFalse(result.get())
