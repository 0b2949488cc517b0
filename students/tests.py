import io
import json
from datetime import date, datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse
import pandas as pd

from academics.models import SchoolClass, Subject
from gradebook.models import Grade
from students.forms import StudentForm
from students.models import Student
from students.views.bulk_import import SESSION_KEY, validate_rows
from students.views.utils import parse_date, clean_value

User = get_user_model()


class ParseDateTests(TestCase):
    """Tests for the parse_date utility function."""

    def test_parse_date_none(self):
        """Test parsing None returns None."""
        self.assertIsNone(parse_date(None))

    def test_parse_date_nan(self):
        """Test parsing NaN returns None."""
        self.assertIsNone(parse_date(float('nan')))

    def test_parse_date_empty_string(self):
        """Test parsing empty string returns None."""
        self.assertIsNone(parse_date(''))
        self.assertIsNone(parse_date('   '))

    def test_parse_date_datetime_object(self):
        """Test parsing datetime object returns date."""
        self.assertEqual(parse_date(datetime(2024, 5, 15, 10, 30)), date(2024, 5, 15))

    def test_parse_date_formats(self):
        """Test ISO, UK and dash formats."""
        self.assertEqual(parse_date('2024-05-15'), date(2024, 5, 15))
        self.assertEqual(parse_date('15/05/2024'), date(2024, 5, 15))
        self.assertEqual(parse_date('15-05-2024'), date(2024, 5, 15))

    def test_parse_date_invalid(self):
        """Test an unparseable string returns None."""
        self.assertIsNone(parse_date('not a date'))


class CleanValueTests(TestCase):
    """Tests for the clean_value utility function."""

    def test_clean_value_none_and_nan(self):
        """Test None and NaN become empty strings."""
        self.assertEqual(clean_value(None), '')
        self.assertEqual(clean_value(float('nan')), '')

    def test_clean_value_strips(self):
        """Test strings are stripped."""
        self.assertEqual(clean_value('  Asha  '), 'Asha')

    def test_clean_value_integer_float(self):
        """Test whole floats lose their decimal part."""
        self.assertEqual(clean_value(3.0), '3')
        self.assertEqual(clean_value(12), '12')


class StudentDataMixin:
    def setUp(self):
        self.class3 = SchoolClass.objects.create(id='3', name='Class 3', sections=['A', 'B'])
        self.class5 = SchoolClass.objects.create(id='5', name='Class 5', sections=['A'])
        self.student = Student.objects.create(
            name='Asha Rao', roll_number='1', current_class=self.class3, section='A'
        )
        self.other_student = Student.objects.create(
            name='Ravi Kumar', roll_number='1', current_class=self.class5, section='A'
        )
        self.admin = User.objects.create_admin('principal', password='adminpass123')
        self.teacher = User.objects.create_teacher('teacher1', password='teachpass123')
        self.teacher.assigned_classes.add(self.class3)


class StudentFormTests(StudentDataMixin, TestCase):
    """Tests for StudentForm validation."""

    def form_data(self, **kwargs):
        data = {
            'name': 'Zoya Ali',
            'roll_number': '2',
            'current_class': '3',
            'section': 'B',
        }
        data.update(kwargs)
        return data

    def test_valid_form(self):
        """Test a student in an existing section is valid."""
        form = StudentForm(self.form_data(), user=self.admin)
        self.assertTrue(form.is_valid(), form.errors)

    def test_unknown_section_rejected(self):
        """Test a section the class does not have is rejected."""
        form = StudentForm(self.form_data(section='C'), user=self.admin)
        self.assertFalse(form.is_valid())
        self.assertIn('section', form.errors)

    def test_duplicate_roll_number_in_class_rejected(self):
        """Test roll numbers are unique within a class."""
        form = StudentForm(self.form_data(roll_number='1'), user=self.admin)
        self.assertFalse(form.is_valid())

    def test_same_roll_number_in_other_class_allowed(self):
        """Test the same roll number may be reused in another class."""
        form = StudentForm(self.form_data(roll_number='1', current_class='5', section='A'), user=self.admin)
        self.assertTrue(form.is_valid(), form.errors)

    def test_teacher_class_choices_limited(self):
        """Test teachers only see their own classes."""
        form = StudentForm(user=self.teacher)
        self.assertEqual(list(form.fields['current_class'].queryset), [self.class3])


class StudentViewTests(StudentDataMixin, TestCase):
    """Tests for the student list and CRUD views."""

    def test_index_requires_login(self):
        """Test anonymous users are redirected."""
        response = self.client.get(reverse('students:index'))
        self.assertEqual(response.status_code, 302)

    def test_teacher_sees_only_assigned_students(self):
        """Test the list is narrowed to the teacher's classes."""
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('students:index'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(response.context['students']), [self.student])

    def test_admin_search(self):
        """Test searching by name."""
        self.client.force_login(self.admin)
        response = self.client.get(reverse('students:index'), {'search': 'ravi'})
        self.assertEqual(list(response.context['students']), [self.other_student])

    def test_create_student(self):
        """Test creating a student redirects to the detail page."""
        self.client.force_login(self.teacher)
        response = self.client.post(reverse('students:student_create'), {
            'name': 'Zoya Ali', 'roll_number': '2', 'current_class': '3', 'section': 'B',
        })
        student = Student.objects.get(name='Zoya Ali')
        self.assertRedirects(response, reverse('students:student_detail', args=[student.pk]))

    def test_create_invalid_returns_422(self):
        """Test an invalid form is re-rendered with 422."""
        self.client.force_login(self.admin)
        response = self.client.post(reverse('students:student_create'), {
            'name': '', 'roll_number': '2', 'current_class': '3', 'section': 'B',
        })
        self.assertEqual(response.status_code, 422)

    def test_teacher_cannot_create_in_other_class(self):
        """Test a teacher cannot add a student to an unassigned class."""
        self.client.force_login(self.teacher)
        response = self.client.post(reverse('students:student_create'), {
            'name': 'Zoya Ali', 'roll_number': '2', 'current_class': '5', 'section': 'A',
        })
        self.assertEqual(response.status_code, 403)
        self.assertFalse(Student.objects.filter(name='Zoya Ali').exists())

    def test_teacher_cannot_view_other_class_student(self):
        """Test the detail page is forbidden outside the teacher's classes."""
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('students:student_detail', args=[self.other_student.pk]))
        self.assertEqual(response.status_code, 403)

    def test_detail_shows_result(self):
        """Test the detail page carries the full-year result."""
        self.client.force_login(self.admin)
        response = self.client.get(reverse('students:student_detail', args=[self.student.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertIn('result', response.context)

    def test_edit_student(self):
        """Test editing moves a student to another section."""
        self.client.force_login(self.admin)
        response = self.client.post(reverse('students:student_edit', args=[self.student.pk]), {
            'name': 'Asha Rao', 'roll_number': '1', 'current_class': '3', 'section': 'B',
        })
        self.assertEqual(response.status_code, 302)
        self.student.refresh_from_db()
        self.assertEqual(self.student.section, 'B')

    def test_delete_removes_grades(self):
        """Test deleting a student deletes their grades."""
        maths = Subject.objects.create(name='Mathematics', code='MATH')
        maths.classes.add(self.class3)
        Grade.objects.create(
            student=self.student, subject=maths, exam_type='final',
            marks_obtained=Decimal('70'), exam_date=date(2025, 3, 1), academic_year='2024-25',
        )
        self.client.force_login(self.admin)
        response = self.client.post(reverse('students:student_delete', args=[self.student.pk]))
        self.assertEqual(response.status_code, 302)
        self.assertFalse(Student.objects.filter(pk=self.student.pk).exists())
        self.assertEqual(Grade.objects.count(), 0)

    def test_delete_requires_post(self):
        """Test GET on delete is rejected."""
        self.client.force_login(self.admin)
        response = self.client.get(reverse('students:student_delete', args=[self.student.pk]))
        self.assertEqual(response.status_code, 405)


class BulkImportTests(StudentDataMixin, TestCase):
    """Tests for bulk student import."""

    def make_csv(self, rows):
        df = pd.DataFrame(rows)
        return SimpleUploadedFile('students.csv', df.to_csv(index=False).encode(), content_type='text/csv')

    def test_validate_rows(self):
        """Test row checks for class, section and roll number."""
        df = pd.DataFrame([
            {'name': 'Zoya Ali', 'roll_number': '2', 'class': '3', 'section': 'A'},
            {'name': 'Dup In File', 'roll_number': '2', 'class': '3', 'section': 'B'},
            {'name': 'Existing Roll', 'roll_number': '1', 'class': '3', 'section': 'A'},
            {'name': 'Bad Class', 'roll_number': '9', 'class': '99', 'section': 'A'},
            {'name': 'Bad Section', 'roll_number': '9', 'class': '5', 'section': 'Z'},
            {'name': '', 'roll_number': '10', 'class': '5', 'section': 'A'},
        ])
        valid_rows, errors = validate_rows(df)
        self.assertEqual([r['name'] for r in valid_rows], ['Zoya Ali'])
        self.assertEqual([e['row'] for e in errors], [3, 4, 5, 6, 7])

    def test_template_download(self):
        """Test the template is an Excel file with the expected columns."""
        self.client.force_login(self.admin)
        response = self.client.get(reverse('students:bulk_import_template'))
        self.assertEqual(response.status_code, 200)
        df = pd.read_excel(io.BytesIO(b''.join(response.streaming_content)), engine='openpyxl')
        self.assertIn('roll_number', df.columns)
        self.assertIn('class', df.columns)

    def test_teacher_cannot_import(self):
        """Test bulk import is admin only."""
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('students:bulk_import'))
        self.assertRedirects(response, reverse('core:index'), fetch_redirect_response=False)

    def test_preview_then_confirm(self):
        """Test the upload previews rows and confirm creates them."""
        self.client.force_login(self.admin)
        upload = self.make_csv([
            {'name': 'Zoya Ali', 'roll_number': '2', 'class': '3', 'section': 'B',
             'date_of_birth': '2015-06-01'},
            {'name': 'Omar Shah', 'roll_number': '2', 'class': '5', 'section': 'A',
             'date_of_birth': ''},
        ])
        response = self.client.post(reverse('students:bulk_import'), {'file': upload})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['valid_count'], 2)
        self.assertEqual(len(json.loads(self.client.session[SESSION_KEY])), 2)

        response = self.client.post(reverse('students:bulk_import_confirm'))
        self.assertRedirects(response, reverse('students:index'), fetch_redirect_response=False)
        zoya = Student.objects.get(name='Zoya Ali')
        self.assertEqual(zoya.date_of_birth, date(2015, 6, 1))
        self.assertEqual(zoya.current_class_id, '3')
        self.assertNotIn(SESSION_KEY, self.client.session)

    def test_rejects_unsupported_file(self):
        """Test non spreadsheet uploads are refused."""
        self.client.force_login(self.admin)
        upload = SimpleUploadedFile('students.txt', b'name\nx', content_type='text/plain')
        response = self.client.post(reverse('students:bulk_import'), {'file': upload})
        self.assertEqual(response.status_code, 200)
        self.assertIn('supported', response.context['error'])
