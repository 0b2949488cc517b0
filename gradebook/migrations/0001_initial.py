import django.core.validators
import django.db.models.deletion
import uuid
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("academics", "0001_initial"),
        ("students", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Grade",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("exam_type", models.CharField(choices=[("assignment", "Assignment"), ("half-yearly", "Half Yearly"), ("final", "Final")], max_length=20)),
                ("term", models.PositiveSmallIntegerField(blank=True, choices=[(1, "Term 1"), (2, "Term 2")], help_text="Required for assignments, empty for exams", null=True)),
                ("marks_obtained", models.DecimalField(decimal_places=2, max_digits=6, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("exam_date", models.DateField()),
                ("academic_year", models.CharField(help_text="e.g. 2024-25", max_length=7, validators=[django.core.validators.RegexValidator(message="Academic year must look like 2024-25.", regex="^\\d{4}-\\d{2}$")])),
                ("remarks", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="grades", to="students.student")),
                ("subject", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="grades", to="academics.subject")),
            ],
            options={
                "verbose_name": "Grade",
                "verbose_name_plural": "Grades",
                "ordering": ["student", "subject", "exam_type", "term", "exam_date"],
                "indexes": [
                    models.Index(fields=["student", "academic_year"], name="grade_student_year_idx"),
                    models.Index(fields=["student", "subject", "academic_year", "exam_type", "term"], name="grade_assignment_slot_idx"),
                ],
            },
        ),
    ]
