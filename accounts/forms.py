from django import forms
from django.contrib.auth import get_user_model
from django.contrib.auth.forms import AuthenticationForm, PasswordChangeForm

User = get_user_model()


class LoginForm(AuthenticationForm):
    """Login form using username and password."""

    username = forms.CharField(
        label="Username",
        widget=forms.TextInput(attrs={
            'autofocus': True,
            'autocomplete': 'username',
        })
    )
    password = forms.CharField(
        label="Password",
        strip=False,
        widget=forms.PasswordInput(attrs={
            'autocomplete': 'current-password',
        })
    )

    error_messages = {
        'invalid_login': "Invalid username or password. Please try again.",
        'inactive': "This account is inactive. Contact your administrator.",
    }


class UsernameChangeForm(forms.ModelForm):
    """Change the signed-in user's username."""

    current_password = forms.CharField(
        label="Current password",
        strip=False,
        widget=forms.PasswordInput(attrs={'autocomplete': 'current-password'})
    )

    class Meta:
        model = User
        fields = ['username']
        widgets = {
            'username': forms.TextInput(attrs={'placeholder': 'New username'}),
        }

    def clean_username(self):
        username = self.cleaned_data['username'].strip()
        if len(username) < 3:
            raise forms.ValidationError("Username must be at least 3 characters long.")
        if User.objects.filter(username__iexact=username).exclude(pk=self.instance.pk).exists():
            raise forms.ValidationError("This username is already taken.")
        return username

    def clean_current_password(self):
        password = self.cleaned_data['current_password']
        if not self.instance.check_password(password):
            raise forms.ValidationError("Current password is incorrect.")
        return password


class AccountPasswordChangeForm(PasswordChangeForm):
    """Password change that verifies the current password first."""

    error_messages = {
        **PasswordChangeForm.error_messages,
        'password_incorrect': "Current password is incorrect.",
    }
