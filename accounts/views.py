import logging

from django.contrib import messages
from django.contrib.auth import update_session_auth_hash
from django.contrib.auth.decorators import login_required
from django.contrib.auth.views import LoginView, PasswordChangeView
from django.shortcuts import redirect
from django.urls import reverse_lazy

from core.utils import breadcrumbs, htmx_render
from .forms import LoginForm, UsernameChangeForm, AccountPasswordChangeForm

logger = logging.getLogger(__name__)


class SchoolLoginView(LoginView):
    """Username/password login. The session context is populated on success."""
    template_name = 'accounts/login.html'
    authentication_form = LoginForm
    redirect_authenticated_user = True


class ForcePasswordChangeView(PasswordChangeView):
    """
    Password change view that clears the must_change_password flag.
    """
    template_name = 'accounts/password_change.html'
    form_class = AccountPasswordChangeForm
    success_url = reverse_lazy('core:index')

    def form_valid(self, form):
        response = super().form_valid(form)

        # Clear the must_change_password flag
        user = self.request.user
        if user.must_change_password:
            user.must_change_password = False
            user.save(update_fields=['must_change_password'])

        messages.success(self.request, 'Your password has been changed successfully.')
        return response

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['is_forced'] = self.request.user.must_change_password
        return context


@login_required
def account_settings(request):
    """Change username or password for the signed-in user."""
    user = request.user
    username_form = UsernameChangeForm(instance=user)
    password_form = AccountPasswordChangeForm(user)
    status = 200

    if request.method == 'POST':
        action = request.POST.get('action')

        if action == 'username':
            username_form = UsernameChangeForm(request.POST, instance=user)
            if username_form.is_valid():
                old_username = user.username
                username_form.save()
                logger.info(f"User {old_username} changed username to {user.username}")
                messages.success(request, 'Username updated successfully.')
                return redirect('accounts:settings')
            status = 422

        elif action == 'password':
            password_form = AccountPasswordChangeForm(user, request.POST)
            if password_form.is_valid():
                password_form.save()
                update_session_auth_hash(request, password_form.user)
                logger.info(f"User {user.username} changed password")
                messages.success(request, 'Password updated successfully.')
                return redirect('accounts:settings')
            status = 422

    context = {
        'username_form': username_form,
        'password_form': password_form,
        'breadcrumbs': breadcrumbs(('Account Settings', None)),
    }
    response = htmx_render(
        request,
        'accounts/settings.html',
        'accounts/partials/settings_content.html',
        context
    )
    response.status_code = status
    return response
