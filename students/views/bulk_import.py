import io
import json
import logging
from datetime import datetime

from django.contrib import messages
from django.db import DatabaseError, transaction
from django.http import FileResponse, HttpResponse
from django.shortcuts import redirect, render
import pandas as pd

from academics.models import SchoolClass
from core.access import admin_required
from students.forms import BulkImportForm
from students.models import Student
from .utils import clean_value, parse_date

logger = logging.getLogger(__name__)

SESSION_KEY = 'bulk_import_data'

EXPECTED_COLUMNS = [
    'name', 'roll_number', 'class', 'section', 'father_name', 'mother_name',
    'date_of_birth', 'address', 'phone', 'email', 'admission_date',
]


def _import_form_response(request, error=None):
    return render(request, 'students/partials/modal_bulk_import.html', {
        'expected_columns': EXPECTED_COLUMNS,
        'form': BulkImportForm(),
        'error': error,
    })


def read_import_file(file):
    """DataFrame with normalised column names."""
    ext = file.name.split('.')[-1].lower()
    if ext == 'xlsx':
        df = pd.read_excel(file, engine='openpyxl')
    else:
        df = pd.read_csv(file)
    df.columns = df.columns.str.strip().str.lower().str.replace(' ', '_')
    return df


def validate_rows(df):
    """
    Check every row against the classes on record.

    Returns (valid_rows, all_errors). Roll numbers must be unique within a
    class, both against existing students and within the file.
    """
    classes = {c.pk: c for c in SchoolClass.objects.all()}
    taken = set(Student.objects.values_list('current_class_id', 'roll_number'))

    all_errors = []
    valid_rows = []

    for idx, row in df.iterrows():
        row_num = idx + 2  # Excel row number
        errors = []

        name = clean_value(row.get('name', ''))
        roll_number = clean_value(row.get('roll_number', ''))
        class_id = clean_value(row.get('class', ''))
        section = clean_value(row.get('section', ''))
        date_of_birth = parse_date(row.get('date_of_birth'))
        admission_date = parse_date(row.get('admission_date'))

        if not name:
            errors.append('Name is required')
        if not roll_number:
            errors.append('Roll number is required')

        school_class = classes.get(class_id)
        if not class_id:
            errors.append('Class is required')
        elif school_class is None:
            errors.append(f'Class "{class_id}" not found')
        elif not school_class.has_section(section):
            errors.append(f'Section "{section}" does not exist in {school_class.name}')

        if roll_number and school_class and (class_id, roll_number) in taken:
            errors.append(f'Roll number "{roll_number}" already exists in {school_class.name}')

        if errors:
            all_errors.append({'row': row_num, 'errors': errors})
            continue

        valid_rows.append({
            'row_num': row_num,
            'name': name,
            'roll_number': roll_number,
            'class_id': class_id,
            'class_name': school_class.name,
            'section': section,
            'father_name': clean_value(row.get('father_name', '')),
            'mother_name': clean_value(row.get('mother_name', '')),
            'address': clean_value(row.get('address', '')),
            'phone': clean_value(row.get('phone', '')),
            'email': clean_value(row.get('email', '')),
            'date_of_birth': str(date_of_birth) if date_of_birth else '',
            'admission_date': str(admission_date) if admission_date else '',
        })
        taken.add((class_id, roll_number))

    return valid_rows, all_errors


@admin_required
def bulk_import(request):
    """Handle bulk import of students from Excel/CSV."""
    if request.method == 'GET':
        return _import_form_response(request)

    form = BulkImportForm(request.POST, request.FILES)
    if not form.is_valid():
        error = form.errors.get('file', ['Please select a file to upload.'])[0]
        return _import_form_response(request, error)

    try:
        df = read_import_file(form.cleaned_data['file'])
    except (ValueError, OSError, UnicodeDecodeError) as e:
        logger.warning(f"Bulk import file could not be read: {e}")
        return _import_form_response(request, f'Error reading file: {e}')

    if df.empty:
        return _import_form_response(request, 'The file is empty.')

    valid_rows, all_errors = validate_rows(df)
    request.session[SESSION_KEY] = json.dumps(valid_rows)

    return render(request, 'students/partials/modal_bulk_preview.html', {
        'valid_rows': valid_rows,
        'all_errors': all_errors,
        'total_rows': len(df),
        'valid_count': len(valid_rows),
        'error_count': len(all_errors),
    })


def _to_date(value):
    return datetime.strptime(value, '%Y-%m-%d').date() if value else None


@admin_required
def bulk_import_confirm(request):
    """Confirm and process the bulk import."""
    if request.method != 'POST':
        return HttpResponse(status=405)

    data = request.session.get(SESSION_KEY)
    if not data:
        return _import_form_response(request, 'Session expired. Please upload the file again.')

    try:
        rows = json.loads(data)
    except json.JSONDecodeError:
        return _import_form_response(request, 'Invalid session data. Please upload the file again.')

    students_to_create = [
        Student(
            name=row['name'],
            roll_number=row['roll_number'],
            current_class_id=row['class_id'],
            section=row['section'],
            father_name=row.get('father_name', ''),
            mother_name=row.get('mother_name', ''),
            address=row.get('address', ''),
            phone=row.get('phone', ''),
            email=row.get('email', ''),
            date_of_birth=_to_date(row.get('date_of_birth')),
            admission_date=_to_date(row.get('admission_date')),
        )
        for row in rows
    ]

    created_count = 0
    error = None
    try:
        with transaction.atomic():
            created_count = len(Student.objects.bulk_create(students_to_create))
    except DatabaseError as e:
        logger.error(f"Bulk student import failed: {e}")
        error = str(e)

    request.session.pop(SESSION_KEY, None)

    if error:
        messages.error(request, f"Import failed, no students were added: {error}")
    else:
        logger.info(f"{created_count} students imported by {request.user}")
        messages.success(request, f"{created_count} student(s) imported successfully.")

    if request.htmx:
        response = HttpResponse(status=200)
        response['HX-Refresh'] = 'true'
        return response

    return redirect('students:index')


@admin_required
def bulk_import_template(request):
    """Download a sample import template."""
    sample_data = {
        'name': ['Ahmed Hassan', 'Sara Khan'],
        'roll_number': ['JRP001', 'JRP002'],
        'class': ['5', '5'],
        'section': ['A', 'B'],
        'father_name': ['Hassan Ali', 'Khan Muhammad'],
        'mother_name': ['Fatima Hassan', 'Aisha Khan'],
        'date_of_birth': ['2014-05-15', '2014-03-22'],
        'address': ['123 Main Street', '456 Garden Road'],
        'phone': ['+92-300-1234567', ''],
        'email': ['ahmed.hassan@email.com', ''],
        'admission_date': ['2024-04-01', '2024-04-01'],
    }

    df = pd.DataFrame(sample_data)
    output = io.BytesIO()

    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df.to_excel(writer, index=False, sheet_name='Students')

    output.seek(0)
    return FileResponse(
        output,
        as_attachment=True,
        filename='student_import_template.xlsx',
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
