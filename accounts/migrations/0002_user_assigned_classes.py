from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("accounts", "0001_initial"),
        ("academics", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="user",
            name="assigned_classes",
            field=models.ManyToManyField(blank=True, help_text="Classes whose students and grades this teacher can see", related_name="teachers", to="academics.schoolclass"),
        ),
    ]
