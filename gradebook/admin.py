from django.contrib import admin

from unfold.admin import ModelAdmin

from .models import Grade


@admin.register(Grade)
class GradeAdmin(ModelAdmin):
    list_display = ('student', 'subject', 'exam_type', 'term', 'marks_obtained', 'academic_year', 'exam_date')
    list_filter = ('exam_type', 'term', 'academic_year', 'subject')
    search_fields = ('student__name', 'student__roll_number', 'subject__name', 'remarks')
    autocomplete_fields = ('student', 'subject')
    date_hierarchy = 'exam_date'
    ordering = ('-exam_date',)
