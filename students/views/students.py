import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.db.models import Count, Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404, redirect
from django.urls import reverse

from core.access import (
    accessible_classes, accessible_students, can_access_class, can_access_student,
    teacher_or_admin_required,
)
from core.utils import breadcrumbs, htmx_render
from gradebook import config as gradebook_config
from gradebook.calculations import FULL_YEARLY
from gradebook.reports import load_student_result
from students.forms import StudentForm
from students.models import Student

logger = logging.getLogger(__name__)


def filter_students(user, search='', class_filter='', section_filter=''):
    """Accessible students narrowed by the list filters."""
    students = accessible_students(user).select_related('current_class')

    if search:
        students = students.filter(
            Q(name__icontains=search) |
            Q(roll_number__icontains=search)
        )
    if class_filter:
        students = students.filter(current_class_id=class_filter)
    if section_filter:
        students = students.filter(section=section_filter)
    return students


@login_required
@teacher_or_admin_required
def index(request):
    """Student list page with search and filter."""
    search = request.GET.get('search', '').strip()
    class_filter = request.GET.get('class', '')
    section_filter = request.GET.get('section', '')

    students = filter_students(request.user, search, class_filter, section_filter).annotate(
        grade_count=Count('grades')
    )

    classes = accessible_classes(request.user)
    sections = []
    if class_filter:
        selected = classes.filter(pk=class_filter).first()
        sections = selected.sections if selected else []

    context = {
        'students': students,
        'classes': classes,
        'sections': sections,
        'search': search,
        'class_filter': class_filter,
        'section_filter': section_filter,
        'breadcrumbs': breadcrumbs(('Students', None)),
    }

    return htmx_render(
        request,
        'students/index.html',
        'students/partials/index_content.html',
        context
    )


def _form_response(request, form, student=None, status=200):
    context = {
        'form': form,
        'student': student,
        'breadcrumbs': breadcrumbs(
            ('Students', reverse('students:index')),
            ('Edit Student' if student else 'New Student', None),
        ),
    }
    response = htmx_render(
        request,
        'students/student_form.html',
        'students/partials/student_form_content.html',
        context
    )
    response.status_code = status
    return response


def _check_class_field(request):
    """Teachers may only place students in classes they can see."""
    class_id = request.POST.get('current_class')
    if class_id and not can_access_class(request.user, class_id):
        raise PermissionDenied("You don't have access to this class.")


@login_required
@teacher_or_admin_required
def student_create(request):
    """Create a new student."""
    if request.method == 'GET':
        initial = {'current_class': request.GET.get('class')}
        return _form_response(request, StudentForm(user=request.user, initial=initial))

    if request.method != 'POST':
        return HttpResponse(status=405)

    _check_class_field(request)
    form = StudentForm(request.POST, user=request.user)
    if form.is_valid():
        student = form.save()
        logger.info(f"Student {student.pk} created by {request.user}")
        messages.success(request, f'Student "{student.name}" added.')
        return redirect('students:student_detail', pk=student.pk)

    return _form_response(request, form, status=422)


@login_required
@teacher_or_admin_required
def student_edit(request, pk):
    """Edit a student."""
    student = get_object_or_404(Student.objects.select_related('current_class'), pk=pk)
    if not can_access_student(request.user, student):
        raise PermissionDenied

    if request.method == 'GET':
        return _form_response(request, StudentForm(instance=student, user=request.user), student)

    if request.method != 'POST':
        return HttpResponse(status=405)

    _check_class_field(request)
    form = StudentForm(request.POST, instance=student, user=request.user)
    if form.is_valid():
        student = form.save()
        messages.success(request, f'Student "{student.name}" updated.')
        return redirect('students:student_detail', pk=student.pk)

    return _form_response(request, form, student, status=422)


@login_required
@teacher_or_admin_required
def student_delete(request, pk):
    """Delete a student together with all of their grades."""
    if request.method != 'POST':
        return HttpResponse(status=405)

    student = get_object_or_404(Student, pk=pk)
    if not can_access_student(request.user, student):
        raise PermissionDenied

    name = student.name
    student.delete()
    logger.info(f"Student {pk} ({name}) deleted by {request.user}")
    messages.success(request, f'Student "{name}" deleted.')

    if request.htmx:
        response = HttpResponse(status=200)
        response['HX-Refresh'] = 'true'
        return response
    return redirect('students:index')


@login_required
@teacher_or_admin_required
def student_detail(request, pk):
    """View student details with the current year's results."""
    student = get_object_or_404(Student.objects.select_related('current_class'), pk=pk)
    if not can_access_student(request.user, student):
        raise PermissionDenied

    academic_year = request.GET.get('academic_year') or gradebook_config.DEFAULT_ACADEMIC_YEAR
    result = load_student_result(student, academic_year, FULL_YEARLY)

    return htmx_render(
        request,
        'students/student_detail.html',
        'students/partials/student_detail_content.html',
        {
            'student': student,
            'result': result,
            'academic_year': academic_year,
            'breadcrumbs': breadcrumbs(('Students', reverse('students:index')), (student.name, None)),
        }
    )
