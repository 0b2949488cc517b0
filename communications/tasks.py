import logging
from smtplib import SMTPException

from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def credentials_message(user, password):
    name = user.name or user.username
    return f"""
Dear {name},

Your account for the {settings.SCHOOL_NAME} result management system has been created.

Login Details:
Username: {user.username}
Access ID: {user.access_id or '-'}
Temporary Password: {password}

Please log in and change your password immediately.

This is an automated message. Please do not reply.
"""


def deliver_teacher_credentials(user, password):
    """Email login details to a teacher. Returns True when the mail was sent."""
    if not user.email:
        return False
    try:
        send_mail(
            "Your Teacher Account Has Been Created",
            credentials_message(user, password),
            settings.DEFAULT_FROM_EMAIL,
            [user.email],
            fail_silently=False,
        )
        return True
    except SMTPException as e:
        logger.error(f"Failed to send teacher credentials email: {e}")
        return False
    except OSError as e:
        logger.error(f"Network error sending teacher credentials: {e}")
        return False


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_teacher_credentials(self, user_id, password):
    """Send a teacher's generated credentials, retrying on mail failures."""
    User = get_user_model()
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        logger.error(f"User {user_id} not found for credentials email")
        return False

    if deliver_teacher_credentials(user, password):
        logger.info(f"Credentials emailed to {user.username}")
        return True

    if user.email and self.request.retries < self.max_retries:
        raise self.retry()
    logger.error(f"Credentials email to {user.username} was not delivered")
    return False
