"""
Configuration settings for the gradebook app.

These values can be overridden in Django settings by prefixing with GRADEBOOK_.
For example, to slow down bulk report generation:
    GRADEBOOK_BULK_REPORT_SPACING = 0.5  # seconds between PDFs

All configuration values are lazily loaded to avoid Django setup issues.
"""
from decimal import Decimal


def _get_setting(name, default):
    """Get a gradebook setting from Django settings or use default."""
    from django.conf import settings
    return getattr(settings, f'GRADEBOOK_{name}', default)


# Define defaults as constants for direct use when Django settings are not needed
_DEFAULTS = {
    # Assignment rules
    'ASSIGNMENTS_PER_TERM': 2,
    'ASSIGNMENT_MAX_MARKS': 20,

    # Report verdict
    'REPORT_PASS_PERCENTAGE': Decimal('40'),

    # Academic years offered on entry and report screens
    'DEFAULT_ACADEMIC_YEAR': '2024-25',
    'ACADEMIC_YEAR_CHOICES': ['2024-25', '2023-24', '2022-23'],

    # Bulk report generation
    'BULK_REPORT_SPACING': 0.1,  # seconds between consecutive PDFs
    'EXPORT_ZIP_MAX_AGE_HOURS': 24,

    # Analytics
    'ANALYTICS_RATE_LIMIT': '60/h',

    # Export settings
    'EXCEL_HEADER_COLOR': '4F46E5',

    # Celery task settings
    'TASK_MAX_RETRIES': 3,
    'TASK_RETRY_DELAY': 60,  # seconds
    'BULK_TASK_SOFT_TIME_LIMIT': 25 * 60,
    'BULK_TASK_TIME_LIMIT': 30 * 60,
}


class _ConfigProxy:
    """
    Lazy configuration proxy that loads settings only when accessed.
    This avoids Django setup issues during module import.
    """

    def __getattr__(self, name):
        if name in _DEFAULTS:
            return _get_setting(name, _DEFAULTS[name])
        raise AttributeError(f"Unknown config setting: {name}")


# Module-level proxy object for attribute access
_config = _ConfigProxy()


def __getattr__(name):
    """Enable module-level attribute access via the config proxy."""
    return getattr(_config, name)
