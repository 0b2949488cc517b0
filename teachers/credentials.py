"""
Generated login credentials for new teacher accounts.

Access ids run TCH001, TCH002, ... and usernames are built from the
teacher's name plus random digits. Passwords are temporary: accounts created
with them must change their password on first login.
"""
import re
import secrets
import string

from django.contrib.auth import get_user_model

User = get_user_model()

ACCESS_ID_PREFIX = 'TCH'
USERNAME_LETTERS = 4
USERNAME_MAX_ATTEMPTS = 10000
TEMP_PASSWORD_LENGTH = 8

_ACCESS_ID_PATTERN = re.compile(rf'^{ACCESS_ID_PREFIX}(\d+)$')


class CredentialError(Exception):
    """No unique credential could be generated."""


def generate_access_id():
    """Next free access id, one past the highest number in use."""
    numbers = [0]
    for access_id in User.objects.filter(access_id__startswith=ACCESS_ID_PREFIX).values_list('access_id', flat=True):
        match = _ACCESS_ID_PATTERN.match(access_id)
        if match:
            numbers.append(int(match.group(1)))
    return f"{ACCESS_ID_PREFIX}{max(numbers) + 1:03d}"


def generate_username_from_name(name):
    """
    First four letters of the name (lowercase, letters only, padded with
    ``x``) followed by 4 to 6 random digits, unique among users.
    """
    letters = re.sub(r'[^a-z]', '', (name or '').lower())
    prefix = letters[:USERNAME_LETTERS].ljust(USERNAME_LETTERS, 'x')

    for _ in range(USERNAME_MAX_ATTEMPTS):
        length = 4 + secrets.randbelow(3)
        digits = str(secrets.randbelow(10 ** length)).zfill(length)
        username = prefix + digits
        if not User.objects.filter(username__iexact=username).exists():
            return username

    raise CredentialError('Unable to generate a unique username after multiple attempts')


def generate_temp_password(length=TEMP_PASSWORD_LENGTH):
    """Generate a random temporary password."""
    chars = string.ascii_letters + string.digits
    return ''.join(secrets.choice(chars) for _ in range(length))


def generate_teacher_credentials(name=''):
    return {
        'access_id': generate_access_id(),
        'username': generate_username_from_name(name),
        'password': generate_temp_password(),
    }
