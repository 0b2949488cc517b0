from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.db import models
from django.utils.translation import gettext_lazy as _


class UserManager(DjangoUserManager):
    """
    Custom manager to easily create the two kinds of school users.
    """

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        """Create a Superuser (always an admin)."""
        extra_fields.setdefault('role', User.Role.ADMIN)
        return super().create_superuser(username, email, password, **extra_fields)

    # --- ROLE SPECIFIC HELPERS ---

    def create_admin(self, username, password=None, **extra_fields):
        """Create a school administrator."""
        extra_fields['role'] = User.Role.ADMIN
        return self.create_user(username, password=password, **extra_fields)

    def create_teacher(self, username, password=None, **extra_fields):
        """Create a teacher. Classes are assigned separately."""
        extra_fields['role'] = User.Role.TEACHER
        return self.create_user(username, password=password, **extra_fields)


class User(AbstractUser):
    class Role(models.TextChoices):
        ADMIN = 'admin', _('Admin')
        TEACHER = 'teacher', _('Teacher')

    name = models.CharField(max_length=150, blank=True)
    role = models.CharField(
        max_length=10,
        choices=Role.choices,
        default=Role.TEACHER
    )
    access_id = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        help_text="Teacher access ID, e.g. TCH001"
    )
    assigned_classes = models.ManyToManyField(
        'academics.SchoolClass',
        blank=True,
        related_name='teachers',
        help_text="Classes whose students and grades this teacher can see"
    )
    must_change_password = models.BooleanField(
        default=False,
        help_text="Force a password change on next login"
    )

    objects = UserManager()

    class Meta:
        ordering = ['name', 'username']

    def __str__(self):
        return self.name or self.username

    @property
    def is_admin_role(self):
        return self.is_superuser or self.role == self.Role.ADMIN

    @property
    def is_teacher_role(self):
        return self.role == self.Role.TEACHER and not self.is_superuser

    @property
    def role_label(self):
        """Helper to get a string representation of the user's role"""
        if self.is_superuser: return "Super Admin"
        return self.get_role_display()

    def get_assigned_class_ids(self):
        return list(self.assigned_classes.values_list('pk', flat=True))
