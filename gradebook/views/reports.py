import logging
import os

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.db.models import Q
from django.http import FileResponse, Http404, HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404, redirect
from django.views.decorators.http import require_POST

from academics.models import Subject
from core.access import (
    accessible_classes, accessible_grades, accessible_students, can_access_class,
    is_school_admin, teacher_or_admin_required,
)
from core.utils import breadcrumbs, htmx_render
from ..analytics import build_student_results
from ..calculations import HALF_YEARLY, REPORT_MODES
from ..forms import ReportFilterForm
from ..reports import generate_report_pdf, report_filename
from .. import config

logger = logging.getLogger(__name__)


def filter_report_students(user, search='', class_id='', section=''):
    """Accessible students narrowed by the report list filters."""
    students = accessible_students(user).select_related('current_class')
    if search:
        students = students.filter(Q(name__icontains=search) | Q(roll_number__icontains=search))
    if class_id:
        students = students.filter(current_class_id=class_id)
    if section:
        students = students.filter(section=section)
    return students.order_by('current_class_id', 'section', 'roll_number')


@login_required
@teacher_or_admin_required
def reports(request):
    """Report list: classified results for the accessible students."""
    form = ReportFilterForm(request.GET or None)
    if form.is_bound and form.is_valid():
        filters = form.cleaned_data
    else:
        filters = {
            'search': '', 'class_id': '', 'section': '',
            'academic_year': config.DEFAULT_ACADEMIC_YEAR, 'mode': HALF_YEARLY,
        }

    user = request.user
    academic_year = filters['academic_year']
    mode = filters['mode']

    students = list(filter_report_students(
        user, filters['search'], filters['class_id'], filters['section']
    ))
    grades = list(
        accessible_grades(user).filter(
            academic_year=academic_year,
            student__in=[s.pk for s in students],
        )
    )
    subjects = list(Subject.objects.prefetch_related('classes'))
    results = build_student_results(students, grades, subjects, academic_year, mode)

    classes = accessible_classes(user)
    sections = []
    if filters['class_id']:
        selected = next((c for c in classes if c.pk == filters['class_id']), None)
        sections = selected.sections if selected else []

    context = {
        'form': form,
        'filters': filters,
        'results': results,
        'classes': classes,
        'sections': sections,
        'academic_years': config.ACADEMIC_YEAR_CHOICES,
        'academic_year': academic_year,
        'mode': mode,
        'modes': ReportFilterForm.MODE_CHOICES,
        'breadcrumbs': breadcrumbs(('Reports', None)),
    }
    return htmx_render(
        request,
        'gradebook/reports.html',
        'gradebook/partials/reports_content.html',
        context
    )


@login_required
@teacher_or_admin_required
def report_pdf(request, student_id):
    """Download a student's report card as PDF."""
    from students.models import Student

    student = get_object_or_404(Student.objects.select_related('current_class'), pk=student_id)
    if not can_access_class(request.user, student.current_class_id):
        logger.warning(f"User {request.user} denied report for student {student_id}")
        raise PermissionDenied

    academic_year = request.GET.get('academic_year') or config.DEFAULT_ACADEMIC_YEAR
    mode = request.GET.get('mode') or HALF_YEARLY
    if mode not in REPORT_MODES:
        return HttpResponse('Unknown report mode', status=400)

    try:
        pdf_buffer = generate_report_pdf(student, academic_year, mode)
    except Exception as e:
        logger.error(f"Failed to generate PDF for student {student.pk}: {e}")
        messages.error(request, f'Failed to generate PDF: {e}')
        return redirect('gradebook:reports')

    response = HttpResponse(pdf_buffer.getvalue(), content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{report_filename(student, mode, academic_year)}"'
    return response


@login_required
@teacher_or_admin_required
@require_POST
def bulk_export_start(request):
    """Queue a ZIP of report cards for the selected (or filtered) students."""
    from ..tasks import export_reports_zip

    user = request.user
    academic_year = request.POST.get('academic_year') or config.DEFAULT_ACADEMIC_YEAR
    mode = request.POST.get('mode') or HALF_YEARLY
    if mode not in REPORT_MODES:
        return JsonResponse({'success': False, 'error': 'Unknown report mode'}, status=400)

    student_ids = request.POST.getlist('student_ids')
    if not student_ids:
        students = filter_report_students(
            user,
            request.POST.get('search', ''),
            request.POST.get('class_id', ''),
            request.POST.get('section', ''),
        )
        student_ids = list(students.values_list('pk', flat=True))
    else:
        student_ids = list(
            accessible_students(user).filter(pk__in=student_ids).values_list('pk', flat=True)
        )

    if not student_ids:
        return JsonResponse({'success': False, 'error': 'No students to export'}, status=400)

    task = export_reports_zip.delay(user.pk, student_ids, academic_year, mode)
    logger.info(f"Queued report export {task.id} for {len(student_ids)} students by {user}")
    return JsonResponse({'success': True, 'task_id': task.id, 'total': len(student_ids)})


@login_required
@teacher_or_admin_required
def bulk_export_status(request, task_id):
    """Poll a bulk export task. Only the requester (or an admin) sees its details."""
    from celery.result import AsyncResult

    result = AsyncResult(task_id)
    data = {'task_id': task_id, 'state': result.state}

    if result.state == 'PROGRESS':
        data.update(result.info or {})
    elif result.state == 'SUCCESS':
        data.update(result.result or {})
    elif result.state == 'FAILURE':
        data['error'] = str(result.info)

    owner = data.get('user_id')
    if owner is not None and owner != request.user.pk and not is_school_admin(request.user):
        logger.warning(f"User {request.user} denied status of export {task_id}")
        raise Http404

    return JsonResponse(data)


@login_required
@teacher_or_admin_required
def bulk_export_download(request, filename):
    """Serve a finished export ZIP from MEDIA_ROOT/exports to the user who requested it."""
    from ..tasks import export_owner_id

    export_dir = os.path.join(settings.MEDIA_ROOT, 'exports')
    safe_name = os.path.basename(filename)
    if safe_name != filename or not safe_name.endswith('.zip'):
        raise Http404
    if not is_school_admin(request.user) and export_owner_id(safe_name) != request.user.pk:
        logger.warning(f"User {request.user} denied export {safe_name}")
        raise Http404
    path = os.path.join(export_dir, safe_name)
    if not os.path.exists(path):
        raise Http404
    return FileResponse(open(path, 'rb'), as_attachment=True, filename=safe_name)
