from django.contrib import admin

from unfold.admin import ModelAdmin

from .models import SchoolClass, Subject


@admin.register(SchoolClass)
class SchoolClassAdmin(ModelAdmin):
    list_display = ('id', 'name', 'section_list', 'assigned_teacher')
    search_fields = ('id', 'name')
    list_select_related = ('assigned_teacher',)

    def section_list(self, obj):
        return ', '.join(obj.sections or [])
    section_list.short_description = 'Sections'


@admin.register(Subject)
class SubjectAdmin(ModelAdmin):
    list_display = ('name', 'code', 'max_marks', 'passing_marks')
    search_fields = ('name', 'code')
    filter_horizontal = ('classes',)
