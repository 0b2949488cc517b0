import json
import logging
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods

from communications.models import Announcement
from gradebook import config as gradebook_config
from gradebook.analytics import build_analytics, top_performers
from .access import accessible_classes, is_teacher_or_admin
from .serializers import camelize
from .services import DataService, DataServiceError, ENTITY_MODELS
from .utils import breadcrumbs, htmx_render

logger = logging.getLogger(__name__)


@login_required
def index(request):
    """Dashboard: totals, class snapshot and announcements, scoped to the user."""
    academic_year = request.GET.get('academic_year') or gradebook_config.DEFAULT_ACADEMIC_YEAR
    if academic_year not in gradebook_config.ACADEMIC_YEAR_CHOICES:
        academic_year = gradebook_config.DEFAULT_ACADEMIC_YEAR

    data = build_analytics(request.user, academic_year)

    context = {
        'academic_year': academic_year,
        'academic_years': gradebook_config.ACADEMIC_YEAR_CHOICES,
        'stats': {
            'students': data['total_students'],
            'subjects': data['total_subjects'],
            'grades': data['total_grades'],
            'average_marks': data['average_marks'],
            'pass_rate': data['overall_pass_rate'],
        },
        'class_performance': data['class_performance'],
        'top_performers': top_performers(data['student_results']),
        'my_classes': accessible_classes(request.user) if not request.user.is_admin_role else None,
        'announcements': Announcement.objects.active().select_related('created_by').by_priority()[:5],
        'breadcrumbs': breadcrumbs(),
    }
    return htmx_render(request, 'core/index.html', 'core/partials/index_content.html', context)


# ---- JSON API ----

def api_error(message, status, **extra):
    return JsonResponse({'success': False, 'error': message, **extra}, status=status)


def api_view(view_func):
    """
    JSON endpoint for signed-in teachers and admins. Service failures are
    mapped to HTTP status codes here.
    """
    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return api_error('Authentication required.', 401)
        if not is_teacher_or_admin(request.user):
            return api_error('Not allowed.', 403)

        entity = kwargs.get('entity')
        if entity is not None and entity not in ENTITY_MODELS:
            return api_error(f'Unknown collection: {entity}', 404)

        try:
            return view_func(request, *args, **kwargs)
        except ValidationError as e:
            errors = camelize(e.message_dict) if hasattr(e, 'error_dict') else {'__all__': e.messages}
            return api_error('Validation failed.', 400, errors=errors)
        except PermissionDenied as e:
            return api_error(str(e) or 'Not allowed.', 403)
        except ObjectDoesNotExist as e:
            return api_error(str(e) or 'Not found.', 404)
        except DataServiceError as e:
            return api_error(str(e), 500)
    return _wrapped_view


def _json_body(request):
    try:
        payload = json.loads(request.body or b'{}')
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError('Request body must be valid JSON.')
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object.')
    return payload


@require_GET
@api_view
def api_refresh(request):
    """Every collection the user may see, in camelCase."""
    return JsonResponse({'success': True, **DataService(request.user).refresh()})


@require_http_methods(['GET', 'POST'])
@api_view
def api_collection(request, entity):
    service = DataService(request.user)
    if request.method == 'GET':
        return JsonResponse({'success': True, entity: service.refresh_collection(entity)})

    record = service.create(entity, _json_body(request))
    return JsonResponse({'success': True, 'data': record}, status=201)


@require_http_methods(['GET', 'PATCH', 'DELETE'])
@api_view
def api_record(request, entity, pk):
    service = DataService(request.user)
    if request.method == 'GET':
        return JsonResponse({'success': True, 'data': service.get(entity, pk)})

    if request.method == 'PATCH':
        record = service.update(entity, pk, _json_body(request))
        return JsonResponse({'success': True, 'data': record})

    service.delete(entity, pk)
    return JsonResponse({'success': True})
