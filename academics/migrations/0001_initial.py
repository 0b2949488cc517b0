from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="SchoolClass",
            fields=[
                ("id", models.CharField(help_text="Short class id, e.g. 3 or NUR", max_length=20, primary_key=True, serialize=False)),
                ("name", models.CharField(help_text="e.g., Class 3, Nursery", max_length=100)),
                ("sections", models.JSONField(blank=True, default=list, help_text='Section labels, e.g. ["A", "B"]')),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("assigned_teacher", models.ForeignKey(blank=True, limit_choices_to={"role": "teacher"}, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="class_teacher_of", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Class",
                "verbose_name_plural": "Classes",
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="Subject",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(help_text="e.g., Mathematics, English", max_length=100)),
                ("code", models.CharField(help_text="e.g., MATH, ENG", max_length=20, unique=True)),
                ("max_marks", models.PositiveIntegerField(default=100, help_text="Maximum marks for each exam (half-yearly and final)")),
                ("passing_marks", models.PositiveIntegerField(default=33, help_text="Minimum marks to pass a single grade record")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("classes", models.ManyToManyField(blank=True, help_text="Classes in which this subject is taught", related_name="subjects", to="academics.schoolclass")),
            ],
            options={
                "verbose_name": "Subject",
                "verbose_name_plural": "Subjects",
                "ordering": ["name"],
            },
        ),
    ]
