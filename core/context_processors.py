from django.conf import settings

from accounts.session import get_session_context


def school_branding(request):
    """
    Add the school letterhead to template context.
    Makes 'school' available in all templates.
    """
    return {
        'school': {
            'name': settings.SCHOOL_NAME,
            'tagline': settings.SCHOOL_TAGLINE,
            'contact': settings.SCHOOL_CONTACT,
        }
    }


def session_context(request):
    """Expose the signed-in user's session context as 'school_session'."""
    context = getattr(request, 'school_session', None)
    if context is None and getattr(request, 'user', None) is not None and request.user.is_authenticated:
        context = get_session_context(request)
    return {'school_session': context}
