import logging

from django.contrib import messages
from django.contrib.auth import logout
from django.shortcuts import redirect
from django.urls import reverse, NoReverseMatch

from .session import get_session_context, start_session_context, touch_session_context

logger = logging.getLogger(__name__)


class SessionContextMiddleware:
    """
    Attaches the application session context to ``request.school_session``.

    An authenticated request whose context has been idle longer than
    SESSION_TIMEOUT_SECONDS is logged out, which clears the context.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.school_session = None

        if request.user.is_authenticated:
            context = get_session_context(request)
            if context is None or context.user_id != request.user.pk:
                # Sessions created outside the login view (admin, tests)
                context = start_session_context(request, request.user)
            elif context.is_expired():
                logger.info(f"Session expired for {request.user.username}")
                logout(request)
                messages.info(request, "Your session has expired. Please sign in again.")
                return redirect('accounts:login')
            else:
                touch_session_context(request, context, request.user)
            request.school_session = context

        return self.get_response(request)


class ForcePasswordChangeMiddleware:
    """
    Middleware to force users to change their password on first login.
    Redirects users with must_change_password=True to the password change page.
    """

    # URL names that should be accessible even when password change is required
    ALLOWED_URL_NAMES = [
        'accounts:password_change',
        'accounts:logout',
        'admin:logout',
    ]

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if request.user.is_authenticated and getattr(request.user, 'must_change_password', False):
            allowed_paths = []
            for url_name in self.ALLOWED_URL_NAMES:
                try:
                    allowed_paths.append(reverse(url_name))
                except NoReverseMatch:
                    continue

            current_path = request.path
            is_allowed = (
                current_path in allowed_paths
                or current_path.startswith('/static/')
                or current_path.startswith('/media/')
            )
            if not is_allowed:
                return redirect('accounts:password_change')

        return self.get_response(request)
