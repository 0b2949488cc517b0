"""
Celery tasks for gradebook app.
Handles bulk report card generation and export cleanup.
"""
import logging
import os
import time
import uuid
import zipfile

from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model

from core.access import accessible_students
from . import config
from .reports import generate_report_pdf, report_filename


logger = logging.getLogger(__name__)

EXPORT_PREFIX = 'reports'


def export_zip_name(user_id, mode, academic_year):
    """reports_<user id>_<mode>_<academic year>_<8 hex>.zip"""
    return f"{EXPORT_PREFIX}_{user_id}_{mode}_{academic_year}_{uuid.uuid4().hex[:8]}.zip"


def export_owner_id(filename):
    """User id recorded in an export file name, or None."""
    parts = filename.split('_')
    if len(parts) < 3 or parts[0] != EXPORT_PREFIX or not parts[1].isdigit():
        return None
    return int(parts[1])


def zip_entry_name(student, mode, academic_year, used):
    """
    Report file name inside the ZIP. Roll numbers repeat across classes, so a
    clash gets the class id appended, then a counter.
    """
    name = report_filename(student, mode, academic_year)
    if name in used:
        stem = name[:-len('.pdf')]
        name = f"{stem}_Class{student.current_class_id}.pdf"
        counter = 2
        while name in used:
            name = f"{stem}_Class{student.current_class_id}_{counter}.pdf"
            counter += 1
    used.add(name)
    return name


@shared_task(
    bind=True,
    max_retries=0,
    soft_time_limit=config.BULK_TASK_SOFT_TIME_LIMIT,
    time_limit=config.BULK_TASK_TIME_LIMIT,
)
def export_reports_zip(self, user_id, student_ids, academic_year, mode):
    """
    Generate a ZIP file containing PDF report cards for the given students.

    Reports are rendered one after another with BULK_REPORT_SPACING seconds
    between them. Students the requesting user cannot see are skipped.
    Updates task state with progress so the frontend can poll for status.

    Returns:
        dict with success, filename, total, and errors list
    """
    User = get_user_model()
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        logger.error(f"User {user_id} not found for report export")
        return {'success': False, 'error': 'User not found'}

    students = list(
        accessible_students(user)
        .filter(pk__in=student_ids)
        .select_related('current_class')
        .order_by('current_class_id', 'section', 'roll_number')
    )

    total = len(students)
    if total == 0:
        return {'success': False, 'error': 'No accessible students selected'}

    # Create exports directory
    export_dir = os.path.join(settings.MEDIA_ROOT, 'exports')
    os.makedirs(export_dir, exist_ok=True)

    zip_filename = export_zip_name(user.pk, mode, academic_year)
    zip_path = os.path.join(export_dir, zip_filename)

    spacing = float(config.BULK_REPORT_SPACING)
    errors = []
    used_names = set()

    with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as zf:
        for i, student in enumerate(students):
            self.update_state(
                state='PROGRESS',
                meta={'current': i + 1, 'total': total, 'user_id': user.pk},
            )
            try:
                pdf_buffer = generate_report_pdf(student, academic_year, mode)
                zf.writestr(
                    zip_entry_name(student, mode, academic_year, used_names),
                    pdf_buffer.getvalue(),
                )
            except Exception as e:
                logger.error(f"PDF generation failed for {student}: {e}")
                errors.append(f"{student.name}: {str(e)[:100]}")

            if spacing and i < total - 1:
                time.sleep(spacing)

    logger.info(f"Bulk export {zip_filename}: {total - len(errors)}/{total} reports")
    return {
        'success': True,
        'filename': zip_filename,
        'user_id': user.pk,
        'total': total,
        'errors': errors,
    }


@shared_task
def cleanup_export_zips():
    """
    Remove ZIP export files older than EXPORT_ZIP_MAX_AGE_HOURS.

    Scheduled through CELERY_BEAT_SCHEDULE.
    """
    max_age_hours = config.EXPORT_ZIP_MAX_AGE_HOURS
    exports_root = os.path.join(settings.MEDIA_ROOT, 'exports')

    if not os.path.exists(exports_root):
        return {'deleted': 0}

    cutoff = time.time() - (max_age_hours * 3600)
    deleted = 0

    for filename in os.listdir(exports_root):
        if not filename.endswith('.zip'):
            continue
        filepath = os.path.join(exports_root, filename)
        if os.path.getmtime(filepath) < cutoff:
            os.remove(filepath)
            deleted += 1

    return {'deleted': deleted}
