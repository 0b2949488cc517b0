"""
Role-based visibility.

Admins see every class. Teachers see only the classes assigned to them, and
through those the students and grades of those classes. Every list, report,
entry and analytics view narrows its querysets here before computing anything.
"""
from functools import wraps

from django.contrib import messages
from django.contrib.auth.decorators import user_passes_test
from django.shortcuts import redirect


def is_school_admin(user):
    """Check if user is an admin or superuser."""
    return user.is_authenticated and (user.is_superuser or getattr(user, 'role', None) == 'admin')


def is_teacher_or_admin(user):
    """Check if user is a teacher, admin, or superuser."""
    return user.is_authenticated and (
        is_school_admin(user) or getattr(user, 'role', None) == 'teacher'
    )


def assigned_class_ids(user):
    """Class ids a teacher may see, as strings."""
    return {str(pk) for pk in user.assigned_classes.values_list('pk', flat=True)}


def can_access_class(user, class_id):
    """
    Admins pass unconditionally; teachers pass iff class_id is assigned to
    them. Anyone else fails.
    """
    if not user.is_authenticated:
        return False
    if is_school_admin(user):
        return True
    if getattr(user, 'role', None) != 'teacher' or class_id is None:
        return False
    return str(class_id) in assigned_class_ids(user)


def can_access_student(user, student):
    return can_access_class(user, student.current_class_id)


def accessible_classes(user):
    from academics.models import SchoolClass

    if is_school_admin(user):
        return SchoolClass.objects.all()
    if not is_teacher_or_admin(user):
        return SchoolClass.objects.none()
    return SchoolClass.objects.filter(pk__in=assigned_class_ids(user))


def accessible_students(user):
    from students.models import Student

    if is_school_admin(user):
        return Student.objects.all()
    if not is_teacher_or_admin(user):
        return Student.objects.none()
    return Student.objects.filter(current_class_id__in=assigned_class_ids(user))


def accessible_grades(user):
    from gradebook.models import Grade

    if is_school_admin(user):
        return Grade.objects.all()
    if not is_teacher_or_admin(user):
        return Grade.objects.none()
    return Grade.objects.filter(student__current_class_id__in=assigned_class_ids(user))


def admin_required(view_func):
    """Decorator to require admin or superuser access."""
    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return redirect('accounts:login')
        if not is_school_admin(request.user):
            messages.error(request, "You don't have permission to access this page.")
            return redirect('core:index')
        return view_func(request, *args, **kwargs)
    return _wrapped_view


def teacher_or_admin_required(view_func):
    """Decorator to require teacher, admin, or superuser."""
    return user_passes_test(is_teacher_or_admin)(view_func)
