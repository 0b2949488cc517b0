import logging

from django.contrib import messages
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404, redirect
from django.urls import reverse
from kombu.exceptions import OperationalError

from academics.utils import sync_teacher_classes, unassign_teacher
from communications.tasks import send_teacher_credentials
from core.access import admin_required
from core.utils import breadcrumbs, htmx_render, htmx_refresh_response
from teachers.credentials import (
    generate_access_id, generate_temp_password, generate_username_from_name,
)
from teachers.forms import TeacherForm

logger = logging.getLogger(__name__)

User = get_user_model()


def teacher_queryset():
    return User.objects.filter(role=User.Role.TEACHER, is_superuser=False)


def queue_credentials_email(request, teacher, password):
    """
    Hand the credentials email to celery. When there is no address or the
    queue is unreachable the admin is shown the credentials instead.
    """
    if teacher.email:
        try:
            send_teacher_credentials.delay(teacher.pk, password)
            messages.success(request, f"Credentials for {teacher} are being emailed to {teacher.email}.")
            return True
        except (OperationalError, OSError) as e:
            logger.error(f"Could not queue credentials email for {teacher.username}: {e}")

    messages.warning(
        request,
        f"Share these credentials with {teacher}: username {teacher.username}, "
        f"access ID {teacher.access_id}, temporary password {password}"
    )
    return False


@admin_required
def index(request):
    """Teacher list page with search."""
    teachers = teacher_queryset().prefetch_related('assigned_classes').annotate(
        class_count=Count('assigned_classes', distinct=True)
    ).order_by('access_id', 'name')

    search = request.GET.get('search', '').strip()
    if search:
        teachers = teachers.filter(
            Q(name__icontains=search) |
            Q(email__icontains=search) |
            Q(username__icontains=search) |
            Q(access_id__icontains=search)
        )

    context = {
        'teachers': teachers,
        'search': search,
        'breadcrumbs': breadcrumbs(('Teachers', None)),
    }

    return htmx_render(
        request,
        'teachers/index.html',
        'teachers/partials/index_content.html',
        context
    )


def _form_response(request, form, teacher=None, status=200):
    response = htmx_render(
        request,
        'teachers/teacher_form.html',
        'teachers/partials/teacher_form_content.html',
        {
            'form': form,
            'teacher': teacher,
            'breadcrumbs': breadcrumbs(
                ('Teachers', reverse('teachers:index')),
                ('Edit Teacher' if teacher else 'New Teacher', None),
            ),
        }
    )
    response.status_code = status
    return response


@admin_required
def teacher_create(request):
    """Create a teacher account with generated credentials."""
    if request.method == 'GET':
        return _form_response(request, TeacherForm())

    if request.method != 'POST':
        return HttpResponse(status=405)

    form = TeacherForm(request.POST)
    if not form.is_valid():
        return _form_response(request, form, status=422)

    password = generate_temp_password()
    with transaction.atomic():
        teacher = form.save(commit=False)
        if not teacher.username:
            teacher.username = generate_username_from_name(teacher.name)
        teacher.role = User.Role.TEACHER
        teacher.access_id = generate_access_id()
        teacher.must_change_password = True
        teacher.set_password(password)
        teacher.save()
        sync_teacher_classes(teacher, form.cleaned_data['assigned_classes'])

    logger.info(f"Teacher {teacher.username} ({teacher.access_id}) created by {request.user}")
    queue_credentials_email(request, teacher, password)
    return redirect('teachers:index')


@admin_required
def teacher_edit(request, pk):
    """Edit a teacher's details and class assignments."""
    teacher = get_object_or_404(teacher_queryset(), pk=pk)

    if request.method == 'GET':
        return _form_response(request, TeacherForm(instance=teacher), teacher)

    if request.method != 'POST':
        return HttpResponse(status=405)

    form = TeacherForm(request.POST, instance=teacher)
    if not form.is_valid():
        return _form_response(request, form, teacher, status=422)

    with transaction.atomic():
        teacher = form.save()
        sync_teacher_classes(teacher, form.cleaned_data['assigned_classes'])

    messages.success(request, f"Teacher {teacher} updated.")
    return redirect('teachers:index')


@admin_required
def teacher_delete(request, pk):
    """Remove a teacher from every class, then delete the account."""
    if request.method != 'POST':
        return HttpResponse(status=405)

    teacher = get_object_or_404(teacher_queryset(), pk=pk)
    name = str(teacher)
    with transaction.atomic():
        cleared = unassign_teacher(teacher)
        teacher.delete()

    logger.info(f"Teacher {name} deleted by {request.user}; {cleared} class teacher role(s) cleared")
    messages.success(request, f"Teacher {name} removed.")
    return htmx_refresh_response(request, 'teachers:index')


@admin_required
def teacher_reset_password(request, pk):
    """Issue a new temporary password."""
    if request.method != 'POST':
        return HttpResponse(status=405)

    teacher = get_object_or_404(teacher_queryset(), pk=pk)
    password = generate_temp_password()
    teacher.set_password(password)
    teacher.must_change_password = True
    teacher.save(update_fields=['password', 'must_change_password'])

    logger.info(f"Password reset for {teacher.username} by {request.user}")
    queue_credentials_email(request, teacher, password)
    return htmx_refresh_response(request, 'teachers:index')
