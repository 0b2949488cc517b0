# Grade entry views
from .grades import (
    grade_entry,
    student_overview,
    grade_edit,
    grade_delete,
)

# Report views
from .reports import (
    reports,
    report_pdf,
    bulk_export_start,
    bulk_export_status,
    bulk_export_download,
)

# Analytics views
from .analytics import (
    analytics,
    analytics_export,
)

__all__ = [
    # Grades
    'grade_entry',
    'student_overview',
    'grade_edit',
    'grade_delete',
    # Reports
    'reports',
    'report_pdf',
    'bulk_export_start',
    'bulk_export_status',
    'bulk_export_download',
    # Analytics
    'analytics',
    'analytics_export',
]
