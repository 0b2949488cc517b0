import logging

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from django.contrib.auth.decorators import login_required
from django.http import HttpResponse
from django_ratelimit.decorators import ratelimit

from core.access import accessible_classes, teacher_or_admin_required
from core.utils import breadcrumbs, htmx_render
from ..analytics import build_analytics, top_performers
from ..calculations import FULL_YEARLY, REPORT_MODES
from .. import config

logger = logging.getLogger(__name__)


def _analytics_params(request):
    academic_year = request.GET.get('academic_year') or config.DEFAULT_ACADEMIC_YEAR
    class_id = request.GET.get('class') or None
    mode = request.GET.get('mode')
    if mode not in REPORT_MODES:
        mode = FULL_YEARLY
    return academic_year, class_id, mode


# ============ Analytics Dashboard ============

@login_required
@teacher_or_admin_required
@ratelimit(key='user', rate=config.ANALYTICS_RATE_LIMIT, block=True)
def analytics(request):
    """Analytics over the classes the user can see."""
    academic_year, class_id, mode = _analytics_params(request)
    data = build_analytics(request.user, academic_year, class_id=class_id, mode=mode)

    context = {
        'analytics': data,
        'top_performers': top_performers(data['student_results']),
        'classes': accessible_classes(request.user),
        'selected_class': class_id,
        'academic_year': academic_year,
        'academic_years': config.ACADEMIC_YEAR_CHOICES,
        'mode': mode,
        'breadcrumbs': breadcrumbs(('Analytics', None)),
    }
    return htmx_render(
        request,
        'gradebook/analytics.html',
        'gradebook/partials/analytics_content.html',
        context
    )


# ============ Excel Export ============

def _write_sheet(ws, headers, rows):
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color=config.EXCEL_HEADER_COLOR, end_color=config.EXCEL_HEADER_COLOR, fill_type="solid")
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center', wrap_text=True)
        cell.border = thin_border

    for row_idx, values in enumerate(rows, 2):
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row_idx, column=col, value=value)
            cell.border = thin_border

    for col in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 20


def build_analytics_workbook(data):
    """Workbook with one sheet per analytics section."""
    wb = openpyxl.Workbook()

    ws = wb.active
    ws.title = "Summary"
    _write_sheet(ws, ["Metric", "Value"], [
        ("Academic Year", data['academic_year']),
        ("Total Students", data['total_students']),
        ("Total Subjects", data['total_subjects']),
        ("Grades Entered", data['total_grades']),
        ("Average Marks", float(data['average_marks'])),
        ("Overall Pass Rate (%)", float(data['overall_pass_rate'])),
    ])

    _write_sheet(
        wb.create_sheet("Classes"),
        ["Class", "Students", "Average %", "Average Marks", "Pass Rate (%)", "Grades"],
        [
            (row['name'], row['students'], float(row['avg_percentage']),
             float(row['avg_score']), float(row['pass_rate']), row['total_grades'])
            for row in data['class_performance']
        ],
    )

    _write_sheet(
        wb.create_sheet("Subjects"),
        ["Subject", "Students", "Average %", "Average Marks", "Pass Rate (%)", "Grades"],
        [
            (row['name'], row['students'], float(row['avg_percentage']),
             float(row['avg_score']), float(row['pass_rate']), row['total_grades'])
            for row in data['subject_performance']
        ],
    )

    _write_sheet(
        wb.create_sheet("Grade Distribution"),
        ["Grade", "Students", "Share (%)"],
        [(row['grade'], row['count'], row['percentage']) for row in data['grade_distribution']],
    )

    _write_sheet(
        wb.create_sheet("Exam Types"),
        ["Exam Type", "Average Marks", "Records"],
        [(row['label'], float(row['avg_score']), row['count']) for row in data['exam_type_performance']],
    )

    _write_sheet(
        wb.create_sheet("Students"),
        ["Roll No", "Name", "Class", "Section", "Obtained", "Total", "Percentage", "Grade", "Status"],
        [
            (r['student'].roll_number, r['student'].name, r['student'].current_class_id,
             r['student'].section, float(r['obtained']), float(r['total']),
             round(float(r['percentage']), 2), r['grade'], r['status'].upper())
            for r in data['student_results'] if r['subjects']
        ],
    )
    return wb


@login_required
@teacher_or_admin_required
@ratelimit(key='user', rate=config.ANALYTICS_RATE_LIMIT, block=True)
def analytics_export(request):
    """Download the analytics numbers as an Excel workbook."""
    academic_year, class_id, mode = _analytics_params(request)
    data = build_analytics(request.user, academic_year, class_id=class_id, mode=mode)
    wb = build_analytics_workbook(data)

    response = HttpResponse(
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    response['Content-Disposition'] = f'attachment; filename="analytics_{academic_year}.xlsx"'
    wb.save(response)
    logger.info(f"Analytics export for {academic_year} by {request.user}")
    return response
