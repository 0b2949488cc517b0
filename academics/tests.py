"""
Tests for the academics app.

Focuses on:
- Subject marks validation (passing <= max)
- Class sections and class teacher assignment
- Admin-only class and subject management
"""
from datetime import date
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse

from academics.forms import SchoolClassForm, SubjectForm
from academics.models import SchoolClass, Subject
from academics.utils import set_class_teacher, sync_teacher_classes, unassign_teacher
from gradebook.models import Grade
from students.models import Student

User = get_user_model()


class AcademicsTestCase(TestCase):
    """Base test case with common setup for academics tests."""

    def setUp(self):
        self.admin_user = User.objects.create_admin('admin', password='testpass123', name='Admin')
        self.teacher = User.objects.create_teacher('teacher1', password='testpass123', name='Sarah Ahmed')
        self.class3 = SchoolClass.objects.create(id='3', name='Class 3', sections=['A', 'B'])
        self.class4 = SchoolClass.objects.create(id='4', name='Class 4', sections=['A', 'B'])


class SubjectValidationTest(AcademicsTestCase):
    """Tests for subject marks rules."""

    def test_form_rejects_passing_above_max(self):
        """Test passing marks cannot exceed max marks."""
        form = SubjectForm(data={
            'name': 'Mathematics', 'code': 'math',
            'max_marks': 50, 'passing_marks': 60, 'classes': ['3'],
        })
        self.assertFalse(form.is_valid())
        self.assertIn('passing_marks', form.errors)

    def test_form_accepts_valid_subject(self):
        """Test a valid subject saves with its classes and an upper-case code."""
        form = SubjectForm(data={
            'name': 'Mathematics', 'code': 'math',
            'max_marks': 100, 'passing_marks': 40, 'classes': ['3', '4'],
        })
        self.assertTrue(form.is_valid(), form.errors)
        subject = form.save()
        self.assertEqual(subject.code, 'MATH')
        self.assertTrue(subject.is_taught_in('4'))

    def test_duplicate_code_rejected(self):
        """Test subject codes are unique regardless of case."""
        Subject.objects.create(name='Mathematics', code='MATH')
        form = SubjectForm(data={'name': 'Maths', 'code': 'Math', 'max_marks': 100, 'passing_marks': 40})
        self.assertFalse(form.is_valid())
        self.assertIn('code', form.errors)

    def test_model_clean(self):
        """Test the model enforces the same rule."""
        subject = Subject(name='Science', code='SCI', max_marks=50, passing_marks=51)
        with self.assertRaises(ValidationError):
            subject.full_clean()


class SchoolClassFormTest(AcademicsTestCase):
    """Tests for the class form."""

    def test_sections_parsed_from_text(self):
        """Test comma separated sections are stored as a list."""
        form = SchoolClassForm(data={'id': '5', 'name': 'Class 5', 'sections_text': 'A, B , C'})
        self.assertTrue(form.is_valid(), form.errors)
        school_class = form.save()
        self.assertEqual(school_class.sections, ['A', 'B', 'C'])

    def test_duplicate_sections_rejected(self):
        """Test section labels must be unique."""
        form = SchoolClassForm(data={'id': '5', 'name': 'Class 5', 'sections_text': 'A, A'})
        self.assertFalse(form.is_valid())
        self.assertIn('sections_text', form.errors)

    def test_duplicate_id_rejected(self):
        """Test class ids are unique."""
        form = SchoolClassForm(data={'id': '3', 'name': 'Another', 'sections_text': 'A'})
        self.assertFalse(form.is_valid())

    def test_section_with_students_cannot_be_removed(self):
        """Test removing a section still holding students is rejected."""
        Student.objects.create(name='Ali Ahmed', roll_number='JRP003', current_class=self.class3, section='B')
        form = SchoolClassForm(
            data={'id': '3', 'name': 'Class 3', 'sections_text': 'A'},
            instance=self.class3,
        )
        self.assertFalse(form.is_valid())
        self.assertIn('sections_text', form.errors)

    def test_class_teacher_gets_visibility(self):
        """Test choosing a class teacher adds the class to their classes."""
        form = SchoolClassForm(
            data={'id': '3', 'name': 'Class 3', 'sections_text': 'A, B', 'assigned_teacher': self.teacher.pk},
            instance=self.class3,
        )
        self.assertTrue(form.is_valid(), form.errors)
        form.save()
        self.assertIn('3', self.teacher.get_assigned_class_ids())


class ClassTeacherAssignmentTest(AcademicsTestCase):
    """Tests for class teacher helpers."""

    def test_teacher_moves_between_classes(self):
        """Test a teacher is class teacher of one class at a time."""
        set_class_teacher(self.class3, self.teacher)
        set_class_teacher(self.class4, self.teacher)
        self.class3.refresh_from_db()
        self.class4.refresh_from_db()
        self.assertIsNone(self.class3.assigned_teacher)
        self.assertEqual(self.class4.assigned_teacher, self.teacher)

    def test_sync_clears_dropped_classes(self):
        """Test dropping a class also drops the class teacher role."""
        set_class_teacher(self.class3, self.teacher)
        sync_teacher_classes(self.teacher, [self.class4])
        self.class3.refresh_from_db()
        self.assertIsNone(self.class3.assigned_teacher)
        self.assertEqual(self.teacher.get_assigned_class_ids(), ['4'])

    def test_unassign_teacher(self):
        """Test a teacher is removed from every class."""
        set_class_teacher(self.class3, self.teacher)
        self.teacher.assigned_classes.add(self.class4)
        self.assertEqual(unassign_teacher(self.teacher), 1)
        self.assertEqual(self.teacher.get_assigned_class_ids(), [])


class ClassViewTest(AcademicsTestCase):
    """Tests for class management views."""

    def test_teacher_cannot_manage_classes(self):
        """Test non-admins are redirected away."""
        self.client.force_login(self.teacher)
        response = self.client.post(reverse('academics:class_create'), {'id': '9', 'name': 'Class 9'})
        self.assertRedirects(response, reverse('core:index'), fetch_redirect_response=False)
        self.assertFalse(SchoolClass.objects.filter(pk='9').exists())

    def test_admin_creates_class(self):
        """Test creating a class."""
        self.client.force_login(self.admin_user)
        response = self.client.post(
            reverse('academics:class_create'),
            {'id': '5', 'name': 'Class 5', 'sections_text': 'A, B'},
        )
        self.assertRedirects(response, reverse('academics:class_index'), fetch_redirect_response=False)
        self.assertEqual(SchoolClass.objects.get(pk='5').sections, ['A', 'B'])

    def test_invalid_class_returns_422(self):
        """Test validation errors are reported inline."""
        self.client.force_login(self.admin_user)
        response = self.client.post(reverse('academics:class_create'), {'id': '', 'name': ''})
        self.assertEqual(response.status_code, 422)

    def test_class_with_students_not_deleted(self):
        """Test classes holding students are protected."""
        Student.objects.create(name='Sara Khan', roll_number='JRP002', current_class=self.class3, section='A')
        self.client.force_login(self.admin_user)
        self.client.post(reverse('academics:class_delete', args=['3']))
        self.assertTrue(SchoolClass.objects.filter(pk='3').exists())

    def test_assign_teacher(self):
        """Test assigning a class teacher from the class list."""
        self.client.force_login(self.admin_user)
        self.client.post(
            reverse('academics:class_assign_teacher', args=['4']),
            {'teacher': self.teacher.pk},
        )
        self.class4.refresh_from_db()
        self.assertEqual(self.class4.assigned_teacher, self.teacher)
        self.assertIn('4', self.teacher.get_assigned_class_ids())

    def test_class_index_renders(self):
        """Test the class list page."""
        self.client.force_login(self.admin_user)
        response = self.client.get(reverse('academics:class_index'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context['classes']), 2)


class SubjectViewTest(AcademicsTestCase):
    """Tests for subject management views."""

    def test_delete_subject_removes_grades(self):
        """Test grades referencing a deleted subject are removed."""
        subject = Subject.objects.create(name='Science', code='SCI')
        subject.classes.add(self.class3)
        student = Student.objects.create(name='Ali Ahmed', roll_number='1', current_class=self.class3, section='A')
        Grade.objects.create(
            student=student, subject=subject, exam_type='final',
            marks_obtained=70, exam_date=date(2025, 3, 1), academic_year='2024-25',
        )
        self.client.force_login(self.admin_user)
        self.client.post(reverse('academics:subject_delete', args=[subject.pk]))
        self.assertFalse(Subject.objects.filter(pk=subject.pk).exists())
        self.assertFalse(Grade.objects.exists())

    def test_subject_passing_above_max_returns_422(self):
        """Test the marks rule is enforced at entry time."""
        self.client.force_login(self.admin_user)
        response = self.client.post(reverse('academics:subject_create'), {
            'name': 'Science', 'code': 'SCI', 'max_marks': 50, 'passing_marks': 80,
        })
        self.assertEqual(response.status_code, 422)
        self.assertFalse(Subject.objects.exists())

    def test_academics_index(self):
        """Test the overview page."""
        self.client.force_login(self.admin_user)
        response = self.client.get(reverse('academics:index'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['stats']['sections'], 4)


class SeedAcademicsTest(TestCase):
    """Tests for the seed_academics command."""

    def test_seed(self):
        """Test default classes and subjects are created once."""
        call_command('seed_academics', stdout=StringIO())
        call_command('seed_academics', stdout=StringIO())
        self.assertEqual(SchoolClass.objects.count(), 8)
        self.assertEqual(Subject.objects.count(), 5)
        self.assertTrue(Subject.objects.get(code='ENG').is_taught_in('PNC'))
