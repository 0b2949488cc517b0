from django import forms
from django.utils import timezone

from academics.models import Subject
from core.access import accessible_students
from .models import Grade
from .calculations import REPORT_MODES, HALF_YEARLY, FULL_YEARLY
from .validators import prepare_assignment
from . import config


def academic_year_choices():
    return [(year, year) for year in config.ACADEMIC_YEAR_CHOICES]


class GradeForm(forms.ModelForm):
    """
    Grade entry for one student and subject.

    Students are limited to the user's accessible population. Model
    validation covers marks bounds, the subject/class check, the assignment
    limit and the one-record-per-exam rule, so nothing is saved when any of
    them fail.
    """

    academic_year = forms.ChoiceField(
        choices=academic_year_choices,
        widget=forms.Select(attrs={'class': 'select select-bordered w-full'}),
    )

    class Meta:
        model = Grade
        fields = [
            'student', 'subject', 'exam_type', 'term',
            'marks_obtained', 'exam_date', 'academic_year', 'remarks',
        ]
        widgets = {
            'student': forms.Select(attrs={'class': 'select select-bordered w-full'}),
            'subject': forms.Select(attrs={'class': 'select select-bordered w-full'}),
            'exam_type': forms.Select(attrs={'class': 'select select-bordered w-full'}),
            'term': forms.Select(attrs={'class': 'select select-bordered w-full'}),
            'marks_obtained': forms.NumberInput(attrs={'class': 'input input-bordered w-full', 'step': '0.5', 'min': '0'}),
            'exam_date': forms.DateInput(attrs={'class': 'input input-bordered w-full', 'type': 'date'}),
            'remarks': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'Optional remarks'}),
        }

    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = user
        if user is not None:
            self.fields['student'].queryset = accessible_students(user).select_related('current_class')
        self.fields['subject'].queryset = Subject.objects.all()
        self.fields['term'].required = False
        if not self.is_bound and not self.instance.pk:
            self.initial.setdefault('academic_year', config.DEFAULT_ACADEMIC_YEAR)
            self.initial.setdefault('exam_date', timezone.localdate())

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('exam_type') != Grade.ExamType.ASSIGNMENT:
            cleaned_data['term'] = None
        return cleaned_data

    def save(self, commit=True):
        grade = super().save(commit=False)
        if grade.is_assignment:
            prepare_assignment(grade)
        if commit:
            grade.save()
        return grade


class ReportFilterForm(forms.Form):
    """Search and filter controls on the reports page."""
    MODE_CHOICES = [
        (HALF_YEARLY, 'Half Yearly (Term 1 Assignments + Half Yearly Exam)'),
        (FULL_YEARLY, 'Full Yearly (All Assignments + Both Exams)'),
    ]

    search = forms.CharField(required=False)
    class_id = forms.CharField(required=False)
    section = forms.CharField(required=False)
    academic_year = forms.ChoiceField(choices=academic_year_choices, required=False)
    mode = forms.ChoiceField(choices=MODE_CHOICES, required=False)

    def clean_academic_year(self):
        return self.cleaned_data.get('academic_year') or config.DEFAULT_ACADEMIC_YEAR

    def clean_mode(self):
        mode = self.cleaned_data.get('mode')
        return mode if mode in REPORT_MODES else HALF_YEARLY
