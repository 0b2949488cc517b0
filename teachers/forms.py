from django import forms
from django.contrib.auth import get_user_model

from academics.models import SchoolClass

User = get_user_model()


class TeacherForm(forms.ModelForm):
    """
    Create or edit a teacher account. A blank username on create is filled in
    from the teacher's name.
    """
    assigned_classes = forms.ModelMultipleChoiceField(
        queryset=SchoolClass.objects.all(),
        required=False,
        widget=forms.CheckboxSelectMultiple,
        label='Assigned Classes'
    )

    class Meta:
        model = User
        fields = ['name', 'username', 'email']
        widgets = {
            'name': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'Full name'}),
            'username': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'Leave blank to generate'}),
            'email': forms.EmailInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'Credentials are emailed here'}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['name'].required = True
        self.fields['username'].required = False
        self.fields['username'].help_text = ''
        if self.instance.pk:
            self.fields['username'].required = True
            self.initial.setdefault('assigned_classes', list(self.instance.assigned_classes.all()))

    def clean_username(self):
        username = (self.cleaned_data.get('username') or '').strip()
        if not username:
            return ''
        if len(username) < 3:
            raise forms.ValidationError("Username must be at least 3 characters long.")
        if User.objects.filter(username__iexact=username).exclude(pk=self.instance.pk).exists():
            raise forms.ValidationError(f'Username "{username}" is already taken.')
        return username
