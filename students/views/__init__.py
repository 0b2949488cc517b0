# Student views
from .students import (
    index,
    student_create,
    student_edit,
    student_delete,
    student_detail,
)

# Bulk import views
from .bulk_import import (
    bulk_import,
    bulk_import_confirm,
    bulk_import_template,
)

__all__ = [
    # Students
    'index',
    'student_create',
    'student_edit',
    'student_delete',
    'student_detail',
    # Bulk import
    'bulk_import',
    'bulk_import_confirm',
    'bulk_import_template',
]
