import uuid
from decimal import Decimal

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models

from academics.models import Subject
from students.models import Student
from . import config


academic_year_validator = RegexValidator(
    regex=r'^\d{4}-\d{2}$',
    message='Academic year must look like 2024-25.'
)


class Grade(models.Model):
    """
    A single score record: one assignment, half-yearly or final exam mark
    for a student in a subject during an academic year.
    """
    class ExamType(models.TextChoices):
        ASSIGNMENT = 'assignment', 'Assignment'
        HALF_YEARLY = 'half-yearly', 'Half Yearly'
        FINAL = 'final', 'Final'

    class Term(models.IntegerChoices):
        FIRST = 1, 'Term 1'
        SECOND = 2, 'Term 2'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='grades',
        db_index=True
    )
    subject = models.ForeignKey(
        Subject,
        on_delete=models.CASCADE,
        related_name='grades',
        db_index=True
    )
    exam_type = models.CharField(max_length=20, choices=ExamType.choices)
    term = models.PositiveSmallIntegerField(
        choices=Term.choices,
        null=True,
        blank=True,
        help_text='Required for assignments, empty for exams'
    )
    marks_obtained = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
    )
    exam_date = models.DateField()
    academic_year = models.CharField(
        max_length=7,
        validators=[academic_year_validator],
        help_text='e.g. 2024-25'
    )
    remarks = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['student', 'subject', 'exam_type', 'term', 'exam_date']
        verbose_name = 'Grade'
        verbose_name_plural = 'Grades'
        indexes = [
            models.Index(fields=['student', 'academic_year'], name='grade_student_year_idx'),
            models.Index(
                fields=['student', 'subject', 'academic_year', 'exam_type', 'term'],
                name='grade_assignment_slot_idx'
            ),
        ]

    def __str__(self):
        label = self.get_exam_type_display()
        if self.is_assignment and self.term:
            label = f"{label} (Term {self.term})"
        return f"{self.student} - {self.subject.name} {label}: {self.marks_obtained}"

    @property
    def is_assignment(self):
        return self.exam_type == self.ExamType.ASSIGNMENT

    @property
    def max_marks(self):
        """Highest mark this record may hold."""
        if self.is_assignment:
            return config.ASSIGNMENT_MAX_MARKS
        return self.subject.max_marks

    def clean(self):
        errors = {}

        if self.is_assignment:
            if self.term not in (self.Term.FIRST, self.Term.SECOND):
                errors['term'] = 'Select Term 1 or Term 2 for an assignment.'
        else:
            self.term = None

        # Field-level errors for these are reported by clean_fields()
        try:
            student = self.student if self.student_id else None
            subject = self.subject if self.subject_id else None
        except ObjectDoesNotExist:
            student = subject = None
        marks = self.marks_obtained if isinstance(self.marks_obtained, (Decimal, int)) else None

        if subject is not None and marks is not None:
            if Decimal(str(marks)) > Decimal(str(self.max_marks)):
                errors['marks_obtained'] = f'Marks cannot exceed {self.max_marks}.'

        if student is not None and subject is not None:
            if not subject.is_taught_in(student.current_class_id):
                errors['subject'] = f'{subject.name} is not taught in {student.current_class}.'

        if errors:
            raise ValidationError(errors)

        if self.is_assignment and student is not None and subject is not None:
            from .validators import validate_assignment_limit
            validate_assignment_limit(
                self.student, self.subject, self.academic_year, self.term,
                exclude_pk=None if self._state.adding else self.pk,
            )
        elif student is not None and subject is not None and self.exam_type in self.ExamType.values:
            from .validators import validate_single_exam
            validate_single_exam(
                self.student, self.subject, self.academic_year, self.exam_type,
                exclude_pk=None if self._state.adding else self.pk,
            )
