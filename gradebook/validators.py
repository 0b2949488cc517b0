"""
Assignment-limit rule for grade entry.

Each student may hold at most ASSIGNMENTS_PER_TERM assignment grades per
(subject, academic year, term). The check runs before anything is written.
"""
import logging

from django.core.exceptions import ValidationError

from . import config

logger = logging.getLogger(__name__)


def count_assignments(student, subject, academic_year, term, exclude_pk=None):
    """Number of assignment grades already stored for this slot."""
    from .models import Grade

    qs = Grade.objects.filter(
        student=student,
        subject=subject,
        academic_year=academic_year,
        exam_type=Grade.ExamType.ASSIGNMENT,
        term=term,
    )
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    return qs.count()


def validate_assignment_limit(student, subject, academic_year, term, exclude_pk=None):
    """
    Raise ValidationError when the term already holds the maximum number of
    assignments. Returns the existing count otherwise.
    """
    limit = config.ASSIGNMENTS_PER_TERM
    existing = count_assignments(student, subject, academic_year, term, exclude_pk=exclude_pk)
    if existing >= limit:
        logger.info(
            f"Rejected assignment for student {student.pk}, subject {subject.pk}, "
            f"{academic_year} term {term}: limit {limit} reached"
        )
        raise ValidationError(
            f'Maximum {limit} assignments allowed per term. '
            f'Term {term} already has {existing} assignments for {subject.name}.',
            code='assignment_limit',
        )
    return existing


def default_assignment_remarks(term, number):
    return f"Term {term} Assignment {number}"


def prepare_assignment(grade):
    """
    Validate a new assignment grade and fill in its default remarks.

    Remarks stay free text: they are only filled when left blank. Returns the
    assignment number within its term.
    """
    existing = validate_assignment_limit(
        grade.student, grade.subject, grade.academic_year, grade.term,
        exclude_pk=None if grade._state.adding else grade.pk,
    )
    number = existing + 1
    if not (grade.remarks or '').strip():
        grade.remarks = default_assignment_remarks(grade.term, number)
    return number


def validate_single_exam(student, subject, academic_year, exam_type, exclude_pk=None):
    """Raise ValidationError when this exam is already recorded for the year."""
    from .models import Grade

    qs = Grade.objects.filter(
        student=student,
        subject=subject,
        academic_year=academic_year,
        exam_type=exam_type,
    )
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    if qs.exists():
        label = Grade.ExamType(exam_type).label
        logger.info(
            f"Rejected duplicate {exam_type} for student {student.pk}, "
            f"subject {subject.pk}, {academic_year}"
        )
        raise ValidationError(
            f'{label} marks for {subject.name} in {academic_year} are already recorded. '
            f'Edit the existing grade instead.',
            code='duplicate_exam',
        )
