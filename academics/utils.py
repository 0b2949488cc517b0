"""
Keeping class teachers and teacher visibility in step.

A class has at most one class teacher (``SchoolClass.assigned_teacher``) and a
teacher is class teacher of at most one class. Visibility is governed by
``User.assigned_classes``, so a class teacher always has their class there.
"""
import logging

from django.db import transaction

logger = logging.getLogger(__name__)


@transaction.atomic
def set_class_teacher(school_class, teacher):
    """Make ``teacher`` (or nobody) the class teacher of ``school_class``."""
    from .models import SchoolClass

    if teacher is not None:
        SchoolClass.objects.filter(assigned_teacher=teacher).exclude(pk=school_class.pk).update(
            assigned_teacher=None
        )
        teacher.assigned_classes.add(school_class)

    school_class.assigned_teacher = teacher
    school_class.save(update_fields=['assigned_teacher', 'updated_at'])
    logger.info(f"Class {school_class.pk} class teacher set to {teacher or 'nobody'}")


@transaction.atomic
def sync_teacher_classes(teacher, classes):
    """
    Replace a teacher's assigned classes. Classes they no longer hold lose
    them as class teacher.
    """
    from .models import SchoolClass

    class_ids = [c.pk for c in classes]
    teacher.assigned_classes.set(class_ids)
    SchoolClass.objects.filter(assigned_teacher=teacher).exclude(pk__in=class_ids).update(
        assigned_teacher=None
    )


@transaction.atomic
def unassign_teacher(teacher):
    """Remove a teacher from every class before the account is deleted."""
    from .models import SchoolClass

    cleared = SchoolClass.objects.filter(assigned_teacher=teacher).update(assigned_teacher=None)
    teacher.assigned_classes.clear()
    return cleared
