from django import forms
from django.contrib.auth import get_user_model

from .models import SchoolClass, Subject
from .utils import set_class_teacher


class SchoolClassForm(forms.ModelForm):
    """Form for creating/editing classes. Sections are typed as a comma list."""

    sections_text = forms.CharField(
        label='Sections',
        required=False,
        widget=forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'A, B, C'}),
        help_text='Comma separated section labels'
    )

    class Meta:
        model = SchoolClass
        fields = ['id', 'name', 'assigned_teacher']
        labels = {
            'id': 'Class ID',
            'assigned_teacher': 'Class Teacher',
        }
        widgets = {
            'id': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'e.g., 3'}),
            'name': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'e.g., Class 3'}),
            'assigned_teacher': forms.Select(attrs={'class': 'select select-bordered w-full'}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        User = get_user_model()
        self.fields['assigned_teacher'].queryset = User.objects.filter(
            role=User.Role.TEACHER, is_active=True
        ).order_by('name')
        self.fields['assigned_teacher'].required = False
        if self.instance.pk:
            # The id is referenced by students, subjects and teachers
            self.fields['id'].disabled = True
            self.initial.setdefault('sections_text', ', '.join(self.instance.sections or []))

    def clean_id(self):
        value = (self.cleaned_data.get('id') or '').strip()
        if not value:
            raise forms.ValidationError('Class ID is required.')
        return value

    def clean_sections_text(self):
        raw = self.cleaned_data.get('sections_text') or ''
        sections = [s.strip() for s in raw.split(',') if s.strip()]
        if len(set(sections)) != len(sections):
            raise forms.ValidationError('Section labels must be unique.')
        return sections

    def clean(self):
        cleaned_data = super().clean()
        sections = cleaned_data.get('sections_text')
        if sections is not None and self.instance.pk:
            removed = set(self.instance.sections or []) - set(sections)
            in_use = sorted(
                s for s in removed
                if self.instance.students.filter(section=s).exists()
            )
            if in_use:
                self.add_error(
                    'sections_text',
                    f"Section(s) {', '.join(in_use)} still have students."
                )
        return cleaned_data

    def save(self, commit=True):
        school_class = super().save(commit=False)
        school_class.sections = self.cleaned_data.get('sections_text', [])
        if commit:
            school_class.save()
            set_class_teacher(school_class, school_class.assigned_teacher)
        return school_class


class SubjectForm(forms.ModelForm):
    """Form for creating/editing subjects."""
    class Meta:
        model = Subject
        fields = ['name', 'code', 'max_marks', 'passing_marks', 'classes']
        widgets = {
            'name': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'e.g., Mathematics'}),
            'code': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'e.g., MATH'}),
            'max_marks': forms.NumberInput(attrs={'class': 'input input-bordered w-full', 'min': 1}),
            'passing_marks': forms.NumberInput(attrs={'class': 'input input-bordered w-full', 'min': 0}),
            'classes': forms.CheckboxSelectMultiple(),
        }
        labels = {
            'classes': 'Taught in classes',
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['classes'].queryset = SchoolClass.objects.order_by('id')
        self.fields['classes'].required = False

    def clean_code(self):
        code = (self.cleaned_data.get('code') or '').strip().upper()
        qs = Subject.objects.filter(code__iexact=code)
        if self.instance.pk:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise forms.ValidationError('A subject with this code already exists.')
        return code

    def clean(self):
        cleaned_data = super().clean()
        max_marks = cleaned_data.get('max_marks')
        passing_marks = cleaned_data.get('passing_marks')
        if max_marks is not None and passing_marks is not None and passing_marks > max_marks:
            self.add_error('passing_marks', 'Passing marks cannot exceed maximum marks.')
        return cleaned_data


class AssignTeacherForm(forms.Form):
    """Pick (or clear) the class teacher of a class."""
    teacher = forms.ModelChoiceField(
        queryset=None,
        required=False,
        empty_label='No class teacher',
        widget=forms.Select(attrs={'class': 'select select-bordered w-full'})
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        User = get_user_model()
        self.fields['teacher'].queryset = User.objects.filter(
            role=User.Role.TEACHER, is_active=True
        ).order_by('name')
