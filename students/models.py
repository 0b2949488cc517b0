from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import models


class Student(models.Model):
    """
    Represents a student enrolled in the school.
    A student belongs to exactly one (class, section) pair at any time.
    """
    # Personal Information
    name = models.CharField(max_length=200)
    date_of_birth = models.DateField(null=True, blank=True)
    father_name = models.CharField(max_length=200, blank=True)
    mother_name = models.CharField(max_length=200, blank=True)

    # Contact Information
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)

    # Admission Details
    roll_number = models.CharField(
        max_length=50,
        help_text="Roll number, unique within the class"
    )
    admission_date = models.DateField(null=True, blank=True)

    # Enrollment
    current_class = models.ForeignKey(
        'academics.SchoolClass',
        on_delete=models.PROTECT,
        related_name='students',
    )
    section = models.CharField(max_length=20)

    # Metadata
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['current_class', 'section', 'roll_number']
        verbose_name = "Student"
        verbose_name_plural = "Students"
        constraints = [
            models.UniqueConstraint(
                fields=['current_class', 'roll_number'],
                name='unique_roll_number_per_class',
            ),
        ]
        indexes = [
            models.Index(fields=['current_class', 'section'], name='student_class_section_idx'),
            models.Index(fields=['name'], name='student_name_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.roll_number})"

    def clean(self):
        if self.current_class_id and self.section:
            try:
                school_class = self.current_class
            except ObjectDoesNotExist:
                return
            if not school_class.has_section(self.section):
                raise ValidationError({
                    'section': f"Section '{self.section}' does not exist in {self.current_class}."
                })
