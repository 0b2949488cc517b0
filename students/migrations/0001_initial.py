from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("academics", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Student",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("date_of_birth", models.DateField(blank=True, null=True)),
                ("father_name", models.CharField(blank=True, max_length=200)),
                ("mother_name", models.CharField(blank=True, max_length=200)),
                ("address", models.TextField(blank=True)),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("roll_number", models.CharField(help_text="Roll number, unique within the class", max_length=50)),
                ("admission_date", models.DateField(blank=True, null=True)),
                ("section", models.CharField(max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("current_class", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="students", to="academics.schoolclass")),
            ],
            options={
                "verbose_name": "Student",
                "verbose_name_plural": "Students",
                "ordering": ["current_class", "section", "roll_number"],
                "indexes": [
                    models.Index(fields=["current_class", "section"], name="student_class_section_idx"),
                    models.Index(fields=["name"], name="student_name_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("current_class", "roll_number"), name="unique_roll_number_per_class"),
                ],
            },
        ),
    ]
