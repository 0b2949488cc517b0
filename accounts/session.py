"""
Application session context.

The signed-in user's role and visible classes are held in one explicit
structure inside the Django session:

- login populates it (see accounts.signals)
- every request reloads role and assigned classes from the user
- logout clears it
- expiry clears it: SessionContextMiddleware compares ``last_seen`` with
  ``SESSION_TIMEOUT_SECONDS`` on every request

Nothing refreshes or expires the context in the background.
"""
import logging

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

SESSION_KEY = 'school_session'


class SessionContext:
    """Snapshot of who is signed in and what they may see."""

    def __init__(self, user_id, role, assigned_class_ids=None, started_at=None, last_seen=None):
        now = timezone.now().timestamp()
        self.user_id = user_id
        self.role = role
        self.assigned_class_ids = list(assigned_class_ids or [])
        self.started_at = started_at or now
        self.last_seen = last_seen or now

    @classmethod
    def for_user(cls, user):
        role = 'admin' if user.is_admin_role else user.role
        class_ids = [] if role == 'admin' else user.get_assigned_class_ids()
        return cls(user_id=user.pk, role=role, assigned_class_ids=class_ids)

    @classmethod
    def from_dict(cls, data):
        return cls(
            user_id=data.get('user_id'),
            role=data.get('role'),
            assigned_class_ids=data.get('assigned_class_ids'),
            started_at=data.get('started_at'),
            last_seen=data.get('last_seen'),
        )

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'role': self.role,
            'assigned_class_ids': self.assigned_class_ids,
            'started_at': self.started_at,
            'last_seen': self.last_seen,
        }

    @property
    def is_admin(self):
        return self.role == 'admin'

    def is_expired(self, now=None):
        now = now or timezone.now().timestamp()
        return now - self.last_seen > settings.SESSION_TIMEOUT_SECONDS


def start_session_context(request, user):
    """Populate the session context after a successful login."""
    context = SessionContext.for_user(user)
    request.session[SESSION_KEY] = context.to_dict()
    logger.info(f"Session started for {user.username} ({context.role})")
    return context


def get_session_context(request):
    """Return the current SessionContext or None."""
    data = request.session.get(SESSION_KEY) if hasattr(request, 'session') else None
    if not data:
        return None
    return SessionContext.from_dict(data)


def touch_session_context(request, context, user):
    """
    Mark the context as seen now and reload role and classes from the user,
    so class reassignments by an admin apply on the next request.
    """
    current = SessionContext.for_user(user)
    context.role = current.role
    context.assigned_class_ids = current.assigned_class_ids
    context.last_seen = timezone.now().timestamp()
    request.session[SESSION_KEY] = context.to_dict()
    return context


def clear_session_context(request):
    if hasattr(request, 'session'):
        request.session.pop(SESSION_KEY, None)
