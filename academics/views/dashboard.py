"""Dashboard/index view for academics app."""
from django.db.models import Count

from core.access import admin_required
from core.utils import breadcrumbs, htmx_render
from ..models import SchoolClass, Subject


@admin_required
def index(request):
    """Academics overview: classes and subjects at a glance (Admin only)."""
    classes = SchoolClass.objects.select_related('assigned_teacher').annotate(
        student_count=Count('students', distinct=True),
        subject_count=Count('subjects', distinct=True),
    ).order_by('id')
    subjects = Subject.objects.annotate(
        class_count=Count('classes', distinct=True)
    ).order_by('name')

    stats = {
        'classes': len(classes),
        'subjects': len(subjects),
        'sections': sum(len(c.sections or []) for c in classes),
        'without_teacher': sum(1 for c in classes if not c.assigned_teacher_id),
    }

    context = {
        'classes': classes,
        'subjects': subjects,
        'stats': stats,
        'breadcrumbs': breadcrumbs(('Academics', None)),
    }
    return htmx_render(
        request,
        'academics/index.html',
        'academics/partials/index_content.html',
        context
    )
