"""Class management views (admin)."""
import logging

from django.contrib import messages
from django.db.models import Count, ProtectedError
from django.http import HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.urls import reverse

from core.access import admin_required
from core.utils import breadcrumbs, htmx_render
from ..forms import AssignTeacherForm, SchoolClassForm
from ..models import SchoolClass
from ..utils import set_class_teacher

logger = logging.getLogger(__name__)


def get_classes_list_context():
    """Classes with student counts plus assignment stats."""
    classes = SchoolClass.objects.select_related('assigned_teacher').annotate(
        student_count=Count('students', distinct=True),
        subject_count=Count('subjects', distinct=True),
    ).order_by('id')
    assigned = sum(1 for c in classes if c.assigned_teacher_id)
    return {
        'classes': classes,
        'assigned_count': assigned,
        'unassigned_count': len(classes) - assigned,
        'teacher_form': AssignTeacherForm(),
    }


@admin_required
def class_index(request):
    """List classes with their class teachers."""
    context = get_classes_list_context()
    context['breadcrumbs'] = breadcrumbs(('Academics', reverse('academics:index')), ('Classes', None))
    return htmx_render(
        request,
        'academics/classes.html',
        'academics/partials/classes_content.html',
        context
    )


def _class_form_response(request, form, school_class=None, status=200):
    response = render(request, 'academics/partials/modal_class_form.html', {
        'form': form,
        'school_class': school_class,
        'is_create': school_class is None,
    })
    response.status_code = status
    return response


def _class_saved_response(request):
    if request.htmx:
        response = render(request, 'academics/partials/classes_list.html', get_classes_list_context())
        response['HX-Trigger'] = 'closeModal'
        response['HX-Retarget'] = '#classes-container'
        response['HX-Reswap'] = 'outerHTML'
        return response
    return redirect('academics:class_index')


@admin_required
def class_create(request):
    """Create a new class."""
    if request.method == 'GET':
        return _class_form_response(request, SchoolClassForm())

    if request.method != 'POST':
        return HttpResponse(status=405)

    form = SchoolClassForm(request.POST)
    if form.is_valid():
        school_class = form.save()
        logger.info(f"Class {school_class.pk} created by {request.user}")
        messages.success(request, f'Class "{school_class.name}" created.')
        return _class_saved_response(request)

    return _class_form_response(request, form, status=422)


@admin_required
def class_edit(request, pk):
    """Edit a class."""
    school_class = get_object_or_404(SchoolClass, pk=pk)

    if request.method == 'GET':
        return _class_form_response(request, SchoolClassForm(instance=school_class), school_class)

    if request.method != 'POST':
        return HttpResponse(status=405)

    form = SchoolClassForm(request.POST, instance=school_class)
    if form.is_valid():
        form.save()
        messages.success(request, f'Class "{school_class.name}" updated.')
        return _class_saved_response(request)

    return _class_form_response(request, form, school_class, status=422)


@admin_required
def class_delete(request, pk):
    """Delete a class. Classes with students cannot be deleted."""
    if request.method != 'POST':
        return HttpResponse(status=405)

    school_class = get_object_or_404(SchoolClass, pk=pk)
    class_name = school_class.name
    try:
        school_class.delete()
    except ProtectedError:
        messages.error(request, f'Class "{class_name}" still has students and cannot be deleted.')
    else:
        logger.info(f"Class {pk} deleted by {request.user}")
        messages.success(request, f'Class "{class_name}" has been deleted.')

    if request.htmx:
        response = HttpResponse(status=200)
        response['HX-Redirect'] = reverse('academics:class_index')
        return response
    return redirect('academics:class_index')


@admin_required
def class_assign_teacher(request, pk):
    """Set or clear the class teacher of a class."""
    if request.method != 'POST':
        return HttpResponse(status=405)

    school_class = get_object_or_404(SchoolClass, pk=pk)
    form = AssignTeacherForm(request.POST)
    if not form.is_valid():
        return HttpResponse('Invalid teacher', status=400)

    teacher = form.cleaned_data['teacher']
    set_class_teacher(school_class, teacher)
    if teacher:
        messages.success(request, f'{teacher} is now class teacher of {school_class.name}.')
    else:
        messages.success(request, f'{school_class.name} no longer has a class teacher.')
    return _class_saved_response(request)
