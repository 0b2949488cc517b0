from django.contrib import admin

from unfold.admin import ModelAdmin

from .models import Student


@admin.register(Student)
class StudentAdmin(ModelAdmin):
    list_display = ('name', 'roll_number', 'current_class', 'section', 'father_name', 'admission_date')
    list_filter = ('current_class', 'section')
    search_fields = ('name', 'roll_number', 'father_name')
    list_select_related = ('current_class',)
    ordering = ('current_class', 'section', 'roll_number')
