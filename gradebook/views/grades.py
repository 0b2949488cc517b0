import json
import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied, ValidationError
from django.http import HttpResponse
from django.shortcuts import get_object_or_404, redirect
from django.urls import reverse

from core.access import (
    accessible_grades, accessible_students, can_access_class, can_access_student,
    teacher_or_admin_required,
)
from core.utils import breadcrumbs, htmx_render
from ..calculations import FULL_YEARLY, assignment_cap_per_term
from ..forms import GradeForm
from ..reports import load_student_result
from .. import config

logger = logging.getLogger(__name__)


def _selected_student(request, user):
    """Student picked in the entry form, if the user may see them."""
    student_id = request.POST.get('student') or request.GET.get('student')
    if not student_id:
        return None
    try:
        return accessible_students(user).select_related('current_class').filter(pk=student_id).first()
    except (ValueError, ValidationError):
        return None


def _check_student_access(user, student_id):
    """Run the class gate for a submitted student before the form is validated."""
    if not student_id:
        return
    from students.models import Student

    try:
        class_id = (
            Student.objects.filter(pk=student_id)
            .values_list('current_class_id', flat=True)
            .first()
        )
    except (ValueError, ValidationError):
        # Not a student id; the form reports it as an invalid choice
        return
    if class_id is not None and not can_access_class(user, class_id):
        logger.warning(f"User {user} denied grade entry for student {student_id}")
        raise PermissionDenied("You don't have access to this student's class.")


def build_student_overview(student, academic_year):
    """
    Running totals per subject for the entry page: term 1 and term 2
    assignments with counts, both exams, and the assignment total.
    """
    result = load_student_result(student, academic_year, FULL_YEARLY)
    return {
        'student': student,
        'academic_year': academic_year,
        'subjects': result['subjects'],
        'term_cap': assignment_cap_per_term(),
        'assignment_cap': assignment_cap_per_term() * 2,
        'assignments_per_term': config.ASSIGNMENTS_PER_TERM,
    }


@login_required
@teacher_or_admin_required
def grade_entry(request):
    """Grade entry form with recent grades and the selected student's overview."""
    user = request.user
    status = 200

    if request.method == 'POST':
        _check_student_access(user, request.POST.get('student'))
        form = GradeForm(request.POST, user=user)
        if form.is_valid():
            grade = form.save()
            logger.info(f"Grade {grade.pk} entered by {user}: {grade}")
            messages.success(request, f'Grade saved for {grade.student.name} in {grade.subject.name}.')
            if request.htmx:
                response = HttpResponse(status=204)
                response['HX-Trigger'] = json.dumps({'gradesChanged': {'student': grade.student_id}})
                response['HX-Refresh'] = 'true'
                return response
            return redirect(f"{reverse('gradebook:grade_entry')}?student={grade.student_id}")
        status = 422
    else:
        form = GradeForm(user=user, initial={'student': request.GET.get('student')})

    academic_year = request.POST.get('academic_year') or request.GET.get('academic_year') or config.DEFAULT_ACADEMIC_YEAR
    student = _selected_student(request, user)
    overview = build_student_overview(student, academic_year) if student else None

    recent_grades = (
        accessible_grades(user)
        .select_related('student', 'subject')
        .order_by('-created_at')[:15]
    )

    context = {
        'form': form,
        'overview': overview,
        'recent_grades': recent_grades,
        'academic_year': academic_year,
        'assignment_max_marks': config.ASSIGNMENT_MAX_MARKS,
        'breadcrumbs': breadcrumbs(('Grade Entry', None)),
    }
    response = htmx_render(
        request,
        'gradebook/grade_entry.html',
        'gradebook/partials/grade_entry_content.html',
        context
    )
    response.status_code = status
    return response


@login_required
@teacher_or_admin_required
def student_overview(request, student_id):
    """Overview fragment for one student, refreshed when the student changes."""
    student = get_object_or_404(accessible_students(request.user).select_related('current_class'), pk=student_id)
    academic_year = request.GET.get('academic_year') or config.DEFAULT_ACADEMIC_YEAR
    return htmx_render(
        request,
        'gradebook/partials/student_overview.html',
        'gradebook/partials/student_overview.html',
        {'overview': build_student_overview(student, academic_year)}
    )


@login_required
@teacher_or_admin_required
def grade_edit(request, pk):
    """Edit a single grade."""
    user = request.user
    grade = get_object_or_404(accessible_grades(user).select_related('student', 'subject'), pk=pk)
    if not can_access_student(user, grade.student):
        raise PermissionDenied
    status = 200

    if request.method == 'POST':
        _check_student_access(user, request.POST.get('student'))
        form = GradeForm(request.POST, instance=grade, user=user)
        if form.is_valid():
            form.save()
            logger.info(f"Grade {grade.pk} updated by {user}")
            messages.success(request, 'Grade updated.')
            if request.htmx:
                response = HttpResponse(status=204)
                response['HX-Refresh'] = 'true'
                return response
            return redirect(f"{reverse('gradebook:grade_entry')}?student={grade.student_id}")
        status = 422
    else:
        form = GradeForm(instance=grade, user=user)

    context = {
        'form': form,
        'grade': grade,
        'breadcrumbs': breadcrumbs(('Grade Entry', reverse('gradebook:grade_entry')), ('Edit Grade', None)),
    }
    response = htmx_render(
        request,
        'gradebook/grade_form.html',
        'gradebook/partials/grade_form_content.html',
        context
    )
    response.status_code = status
    return response


@login_required
@teacher_or_admin_required
def grade_delete(request, pk):
    """Delete a single grade (POST only)."""
    if request.method != 'POST':
        return HttpResponse(status=405)

    user = request.user
    grade = get_object_or_404(accessible_grades(user).select_related('student', 'subject'), pk=pk)
    if not can_access_student(user, grade.student):
        raise PermissionDenied

    student_id = grade.student_id
    description = str(grade)
    grade.delete()
    logger.info(f"Grade deleted by {user}: {description}")
    messages.success(request, 'Grade deleted.')

    if request.htmx:
        response = HttpResponse(status=204)
        response['HX-Refresh'] = 'true'
        return response
    return redirect(f"{reverse('gradebook:grade_entry')}?student={student_id}")
