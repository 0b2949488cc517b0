import logging

from django.contrib import messages
from django.http import HttpResponse
from django.shortcuts import get_object_or_404, redirect, render

from core.access import admin_required
from core.utils import breadcrumbs, htmx_render, htmx_refresh_response
from communications.forms import AnnouncementForm
from communications.models import Announcement

logger = logging.getLogger(__name__)


@admin_required
def index(request):
    """All announcements, active and hidden."""
    status = request.GET.get('status', '')
    announcements = Announcement.objects.select_related('created_by').by_priority()
    if status == 'active':
        announcements = announcements.filter(is_active=True)
    elif status == 'inactive':
        announcements = announcements.filter(is_active=False)

    return htmx_render(
        request,
        'communications/index.html',
        'communications/partials/index_content.html',
        {
            'announcements': announcements,
            'status': status,
            'breadcrumbs': breadcrumbs(('Announcements', None)),
        }
    )


def _form_response(request, form, announcement=None, status=200):
    response = render(request, 'communications/partials/modal_announcement_form.html', {
        'form': form,
        'announcement': announcement,
    })
    response.status_code = status
    return response


@admin_required
def announcement_create(request):
    if request.method == 'GET':
        return _form_response(request, AnnouncementForm())

    if request.method != 'POST':
        return HttpResponse(status=405)

    form = AnnouncementForm(request.POST)
    if not form.is_valid():
        return _form_response(request, form, status=422)

    announcement = form.save(commit=False)
    announcement.created_by = request.user
    announcement.save()
    logger.info(f"Announcement {announcement.pk} created by {request.user}")
    messages.success(request, 'Announcement created successfully!')
    return htmx_refresh_response(request, 'communications:index')


@admin_required
def announcement_edit(request, pk):
    announcement = get_object_or_404(Announcement, pk=pk)

    if request.method == 'GET':
        return _form_response(request, AnnouncementForm(instance=announcement), announcement)

    if request.method != 'POST':
        return HttpResponse(status=405)

    form = AnnouncementForm(request.POST, instance=announcement)
    if not form.is_valid():
        return _form_response(request, form, announcement, status=422)

    form.save()
    messages.success(request, 'Announcement updated successfully!')
    return htmx_refresh_response(request, 'communications:index')


@admin_required
def announcement_delete(request, pk):
    if request.method != 'POST':
        return HttpResponse(status=405)

    announcement = get_object_or_404(Announcement, pk=pk)
    title = announcement.title
    announcement.delete()
    logger.info(f"Announcement {pk} deleted by {request.user}")
    messages.success(request, f'Announcement "{title}" deleted.')
    return htmx_refresh_response(request, 'communications:index')


@admin_required
def announcement_toggle(request, pk):
    """Show or hide an announcement on the dashboard."""
    if request.method != 'POST':
        return HttpResponse(status=405)

    announcement = get_object_or_404(Announcement, pk=pk)
    announcement.is_active = not announcement.is_active
    announcement.save(update_fields=['is_active', 'updated_at'])

    state = 'shown' if announcement.is_active else 'hidden'
    messages.success(request, f'Announcement "{announcement.title}" is now {state}.')
    return htmx_refresh_response(request, 'communications:index')
