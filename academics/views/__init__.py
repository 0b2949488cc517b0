"""
Academics views package.

- dashboard: Index/overview view
- classes: Class CRUD and class teacher assignment
- subjects: Subject CRUD, including the classes a subject is taught in
"""

# Dashboard
from .dashboard import index

# Classes
from .classes import (
    class_index,
    class_create,
    class_edit,
    class_delete,
    class_assign_teacher,
)

# Subjects
from .subjects import (
    subject_index,
    subject_create,
    subject_edit,
    subject_delete,
)

__all__ = [
    'index',
    'class_index',
    'class_create',
    'class_edit',
    'class_delete',
    'class_assign_teacher',
    'subject_index',
    'subject_create',
    'subject_edit',
    'subject_delete',
]
