"""Subject management views (admin)."""
import logging

from django.contrib import messages
from django.db.models import Count
from django.http import HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.urls import reverse

from core.access import admin_required
from core.utils import breadcrumbs, htmx_render
from ..forms import SubjectForm
from ..models import Subject

logger = logging.getLogger(__name__)


def get_subjects_list_context():
    """Get context for subjects list with stats."""
    subjects = Subject.objects.prefetch_related('classes').annotate(
        class_count=Count('classes', distinct=True),
        grade_count=Count('grades', distinct=True),
    ).order_by('name')
    return {'subjects': subjects}


@admin_required
def subject_index(request):
    context = get_subjects_list_context()
    context['breadcrumbs'] = breadcrumbs(('Academics', reverse('academics:index')), ('Subjects', None))
    return htmx_render(
        request,
        'academics/subjects.html',
        'academics/partials/subjects_content.html',
        context
    )


def _subject_form_response(request, form, subject=None, status=200):
    response = render(request, 'academics/partials/modal_subject_form.html', {
        'form': form,
        'subject': subject,
        'is_create': subject is None,
    })
    response.status_code = status
    return response


def _subject_saved_response(request):
    if request.htmx:
        response = render(request, 'academics/partials/subjects_list.html', get_subjects_list_context())
        response['HX-Trigger'] = 'closeModal'
        response['HX-Reswap'] = 'outerHTML'
        response['HX-Retarget'] = '#subjects-container'
        return response
    return redirect('academics:subject_index')


@admin_required
def subject_create(request):
    """Create a new subject."""
    if request.method == 'GET':
        return _subject_form_response(request, SubjectForm())

    if request.method != 'POST':
        return HttpResponse(status=405)

    form = SubjectForm(request.POST)
    if form.is_valid():
        subject = form.save()
        logger.info(f"Subject {subject.code} created by {request.user}")
        messages.success(request, f'Subject "{subject.name}" created.')
        return _subject_saved_response(request)

    # Validation error - show form with errors in modal
    return _subject_form_response(request, form, status=422)


@admin_required
def subject_edit(request, pk):
    """Edit a subject, including the classes it is taught in."""
    subject = get_object_or_404(Subject, pk=pk)

    if request.method == 'GET':
        return _subject_form_response(request, SubjectForm(instance=subject), subject)

    if request.method != 'POST':
        return HttpResponse(status=405)

    form = SubjectForm(request.POST, instance=subject)
    if form.is_valid():
        form.save()
        messages.success(request, f'Subject "{subject.name}" updated.')
        return _subject_saved_response(request)

    return _subject_form_response(request, form, subject, status=422)


@admin_required
def subject_delete(request, pk):
    """Delete a subject together with its grades."""
    if request.method != 'POST':
        return HttpResponse(status=405)

    subject = get_object_or_404(Subject, pk=pk)
    subject_name = subject.name
    grade_count = subject.grades.count()
    subject.delete()
    logger.info(f"Subject {pk} deleted by {request.user} ({grade_count} grades removed)")
    messages.success(request, f'Subject "{subject_name}" has been deleted.')

    if request.htmx:
        response = HttpResponse(status=200)
        response['HX-Redirect'] = reverse('academics:subject_index')
        return response
    return redirect('academics:subject_index')
