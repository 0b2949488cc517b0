from django import forms

from core.access import accessible_classes
from .models import Student


class BulkImportForm(forms.Form):
    """Form for bulk importing students from Excel/CSV."""
    file = forms.FileField(
        help_text="Upload an Excel (.xlsx) or CSV file"
    )

    def clean_file(self):
        file = self.cleaned_data.get('file')
        if file:
            ext = file.name.split('.')[-1].lower()
            if ext not in ['xlsx', 'csv']:
                raise forms.ValidationError("Only .xlsx and .csv files are supported.")
        return file


class StudentForm(forms.ModelForm):
    """Form for creating/editing individual students."""

    class Meta:
        model = Student
        fields = [
            # Personal info
            'name', 'date_of_birth', 'father_name', 'mother_name',
            # Contact
            'address', 'phone', 'email',
            # Admission
            'roll_number', 'admission_date',
            # Enrollment
            'current_class', 'section',
        ]
        widgets = {
            'name': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'Full name'}),
            'date_of_birth': forms.DateInput(attrs={'class': 'input input-bordered w-full', 'type': 'date'}),
            'father_name': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': "Father's name"}),
            'mother_name': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': "Mother's name"}),
            'address': forms.Textarea(attrs={'class': 'textarea textarea-bordered w-full', 'rows': 2, 'placeholder': 'Home address'}),
            'phone': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'Phone number (optional)'}),
            'email': forms.EmailInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'Email (optional)'}),
            'roll_number': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'e.g., JRP001'}),
            'admission_date': forms.DateInput(attrs={'class': 'input input-bordered w-full', 'type': 'date'}),
            'current_class': forms.Select(attrs={'class': 'select select-bordered w-full'}),
            'section': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'e.g., A'}),
        }
        labels = {
            'current_class': 'Class',
        }

    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        # Teachers may only place students in their own classes
        if user is not None:
            self.fields['current_class'].queryset = accessible_classes(user)

    def clean_section(self):
        return (self.cleaned_data.get('section') or '').strip()

    def clean(self):
        cleaned_data = super().clean()
        school_class = cleaned_data.get('current_class')
        section = cleaned_data.get('section')
        if school_class and section and not school_class.has_section(section):
            available = ', '.join(school_class.sections or []) or 'none'
            self.add_error('section', f'{school_class.name} has no section "{section}" (available: {available}).')
        return cleaned_data
