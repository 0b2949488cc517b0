from .teachers import (
    index,
    teacher_create,
    teacher_edit,
    teacher_delete,
    teacher_reset_password,
)

__all__ = [
    'index',
    'teacher_create',
    'teacher_edit',
    'teacher_delete',
    'teacher_reset_password',
]
