from django.conf import settings
from django.db import models
from django.db.models import Case, IntegerField, Value, When


class AnnouncementQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def by_priority(self):
        """High before medium before low, newest first within a priority."""
        return self.annotate(
            priority_rank=Case(
                When(priority=Announcement.Priority.HIGH, then=Value(0)),
                When(priority=Announcement.Priority.MEDIUM, then=Value(1)),
                default=Value(2),
                output_field=IntegerField(),
            )
        ).order_by('priority_rank', '-created_at')


class Announcement(models.Model):
    """A notice shown on the dashboard to every signed-in user."""

    class Priority(models.TextChoices):
        LOW = 'low', 'Low'
        MEDIUM = 'medium', 'Medium'
        HIGH = 'high', 'High'

    title = models.CharField(max_length=200)
    content = models.TextField()
    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='announcements'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AnnouncementQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Announcement'
        verbose_name_plural = 'Announcements'
        indexes = [
            models.Index(fields=['is_active', 'created_at'], name='announcement_active_idx'),
        ]

    def __str__(self):
        return self.title
