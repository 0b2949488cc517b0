from .announcements import (
    index,
    announcement_create,
    announcement_edit,
    announcement_delete,
    announcement_toggle,
)

__all__ = [
    'index',
    'announcement_create',
    'announcement_edit',
    'announcement_delete',
    'announcement_toggle',
]
