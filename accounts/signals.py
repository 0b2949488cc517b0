from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.dispatch import receiver

from .session import start_session_context, clear_session_context


@receiver(user_logged_in)
def populate_session_context(sender, request, user, **kwargs):
    if request is not None:
        start_session_context(request, user)


@receiver(user_logged_out)
def teardown_session_context(sender, request, user, **kwargs):
    if request is not None:
        clear_session_context(request)
