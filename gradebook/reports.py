"""
Per-student report cards.

The report context is computed from the same aggregation used everywhere
else; the PDF is rendered from ``gradebook/report_card_pdf.html`` with
WeasyPrint.
"""
import logging
import re
from io import BytesIO

from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone

from academics.models import Subject
from .calculations import HALF_YEARLY, FULL_YEARLY, compute_student_result, assignment_cap_per_term
from .models import Grade

logger = logging.getLogger(__name__)

REPORT_TITLES = {
    HALF_YEARLY: 'HALF YEARLY RESULT',
    FULL_YEARLY: 'ANNUAL RESULT',
}

FILENAME_MODE_LABELS = {
    HALF_YEARLY: 'HalfYearly',
    FULL_YEARLY: 'Annual',
}


def get_school_context():
    """Letterhead values from settings."""
    return {
        'name': getattr(settings, 'SCHOOL_NAME', ''),
        'tagline': getattr(settings, 'SCHOOL_TAGLINE', ''),
        'contact': getattr(settings, 'SCHOOL_CONTACT', ''),
    }


def report_filename(student, mode, academic_year):
    """{studentName}_{rollNumber}_{HalfYearly|Annual}_{academicYear}.pdf"""
    name = re.sub(r'\s+', '_', student.name.strip())
    return f"{name}_{student.roll_number}_{FILENAME_MODE_LABELS[mode]}_{academic_year}.pdf"


def load_student_result(student, academic_year, mode):
    """Run the aggregation for one student straight from the database."""
    grades = list(Grade.objects.filter(student=student, academic_year=academic_year))
    subjects = list(Subject.objects.filter(classes=student.current_class_id).prefetch_related('classes'))
    return compute_student_result(student, grades, subjects, academic_year, mode)


def build_report_context(student, academic_year, mode, result=None):
    """Everything the report card template needs."""
    if result is None:
        result = load_student_result(student, academic_year, mode)

    cap = assignment_cap_per_term()
    return {
        'school': get_school_context(),
        'title': REPORT_TITLES[mode],
        'mode': mode,
        'is_half_yearly': mode == HALF_YEARLY,
        'academic_year': academic_year,
        'student': student,
        'class_name': student.current_class.name,
        'result': result,
        'subjects': result['subjects'],
        'term_assignment_cap': cap,
        'assignment_cap': cap * 2,
        'generated_on': timezone.localdate(),
    }


def render_report_html(context):
    return render_to_string('gradebook/report_card_pdf.html', context)


def generate_report_pdf(student, academic_year, mode, result=None):
    """
    Generate PDF report card for a student.

    Returns:
        BytesIO: PDF content as bytes buffer
    """
    try:
        from weasyprint import HTML
    except ImportError:
        logger.error("WeasyPrint not installed. Install with: pip install weasyprint")
        raise

    context = build_report_context(student, academic_year, mode, result=result)
    html_string = render_report_html(context)

    html = HTML(string=html_string, base_url=str(settings.BASE_DIR))
    pdf_buffer = BytesIO()
    html.write_pdf(pdf_buffer)
    pdf_buffer.seek(0)

    logger.info(f"Generated {mode} report for student {student.pk} ({academic_year})")
    return pdf_buffer
