from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class SchoolClass(models.Model):
    """
    A class (grade level) such as "Class 3" with its sections.
    The primary key is the short class id used across the school, e.g. "3".
    """
    id = models.CharField(
        max_length=20,
        primary_key=True,
        help_text="Short class id, e.g. 3 or NUR"
    )
    name = models.CharField(
        max_length=100,
        help_text="e.g., Class 3, Nursery"
    )
    sections = models.JSONField(
        default=list,
        blank=True,
        help_text="Section labels, e.g. [\"A\", \"B\"]"
    )
    assigned_teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='class_teacher_of',
        limit_choices_to={'role': 'teacher'},
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['id']
        verbose_name = "Class"
        verbose_name_plural = "Classes"

    def __str__(self):
        return self.name

    def clean(self):
        if not isinstance(self.sections, list):
            raise ValidationError({'sections': 'Sections must be a list of labels.'})
        cleaned = [str(s).strip() for s in self.sections if str(s).strip()]
        if len(set(cleaned)) != len(cleaned):
            raise ValidationError({'sections': 'Section labels must be unique.'})
        self.sections = cleaned

    def has_section(self, section):
        return section in (self.sections or [])


class Subject(models.Model):
    """
    Represents a subject taught at the school.
    A subject applies to a student only if the student's class is in ``classes``.
    """
    name = models.CharField(
        max_length=100,
        help_text="e.g., Mathematics, English"
    )
    code = models.CharField(
        max_length=20,
        unique=True,
        help_text="e.g., MATH, ENG"
    )
    max_marks = models.PositiveIntegerField(
        default=100,
        help_text="Maximum marks for each exam (half-yearly and final)"
    )
    passing_marks = models.PositiveIntegerField(
        default=33,
        help_text="Minimum marks to pass a single grade record"
    )
    classes = models.ManyToManyField(
        SchoolClass,
        blank=True,
        related_name='subjects',
        help_text="Classes in which this subject is taught"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Subject"
        verbose_name_plural = "Subjects"

    def __str__(self):
        return f"{self.name} ({self.code})"

    def clean(self):
        if self.max_marks is not None and self.max_marks <= 0:
            raise ValidationError({'max_marks': 'Maximum marks must be greater than zero.'})
        if (self.passing_marks is not None and self.max_marks is not None
                and self.passing_marks > self.max_marks):
            raise ValidationError({
                'passing_marks': 'Passing marks cannot exceed maximum marks.'
            })

    def is_taught_in(self, class_id):
        return self.classes.filter(pk=class_id).exists()
