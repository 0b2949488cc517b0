import os
import shutil
import tempfile
import zipfile
from datetime import date
from decimal import Decimal
from io import BytesIO, StringIO
from types import SimpleNamespace
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse

from academics.models import SchoolClass, Subject
from students.models import Student
from .analytics import build_analytics, top_performers
from .calculations import (
    FULL_YEARLY, HALF_YEARLY, aggregate_subject_results, calculate_percentage,
    classify_percentage, compute_student_result, report_pass_status, subject_pass_rate,
)
from .forms import GradeForm
from .models import Grade
from .reports import build_report_context, render_report_html, report_filename
from .validators import prepare_assignment, validate_assignment_limit


User = get_user_model()

YEAR = '2024-25'


def make_grade(student_id, subject_id, exam_type, marks, term=None, year=YEAR):
    return SimpleNamespace(
        student_id=student_id,
        subject_id=subject_id,
        exam_type=exam_type,
        term=term,
        marks_obtained=Decimal(str(marks)),
        academic_year=year,
    )


class ResultClassifierTest(TestCase):
    """Tests for percentage, letter grade and verdict."""

    def test_percentage_of_zero_total(self):
        """Test percentage is 0 when nothing is possible."""
        self.assertEqual(calculate_percentage(10, 0), Decimal('0'))

    def test_grade_band_boundaries(self):
        """Test inclusive lower bounds of the grade bands."""
        self.assertEqual(classify_percentage(Decimal('90.0')), 'A+')
        self.assertEqual(classify_percentage(Decimal('89.999')), 'A')
        self.assertEqual(classify_percentage(Decimal('80')), 'A')
        self.assertEqual(classify_percentage(Decimal('70')), 'B')
        self.assertEqual(classify_percentage(Decimal('60')), 'C')
        self.assertEqual(classify_percentage(Decimal('50')), 'D')
        self.assertEqual(classify_percentage(Decimal('40.0')), 'E')
        self.assertEqual(classify_percentage(Decimal('39.999')), 'F')
        self.assertEqual(classify_percentage(0), 'F')

    def test_grade_is_monotonic(self):
        """Test a higher percentage never gets a lower letter."""
        order = ['F', 'E', 'D', 'C', 'B', 'A', 'A+']
        ranks = [order.index(classify_percentage(Decimal(p) / 2)) for p in range(0, 201)]
        self.assertEqual(ranks, sorted(ranks))

    def test_report_pass_status(self):
        """Test the report verdict threshold."""
        self.assertEqual(report_pass_status(Decimal('40')), 'pass')
        self.assertEqual(report_pass_status(Decimal('39.99')), 'fail')

    def test_subject_pass_rate_uses_passing_marks(self):
        """Test pass rate counts records at or above passing_marks."""
        subject = SimpleNamespace(pk=1, passing_marks=33)
        grades = [
            make_grade(1, 1, 'final', 33),
            make_grade(1, 1, 'final', 20),
            make_grade(2, 1, 'final', 90),
            make_grade(2, 99, 'final', 90),
        ]
        rate = subject_pass_rate(grades, {1: subject})
        self.assertEqual(round(rate, 2), Decimal('66.67'))

    def test_subject_pass_rate_without_records(self):
        """Test pass rate is 0 with no records."""
        self.assertEqual(subject_pass_rate([], {}), Decimal('0'))


class GradeAggregatorTest(TestCase):
    """Tests for per-subject aggregation and student results."""

    def setUp(self):
        self.student = SimpleNamespace(pk=1, current_class_id='3')
        self.maths = SimpleNamespace(pk=10, name='Mathematics', max_marks=100, class_ids=['3'])
        self.science = SimpleNamespace(pk=11, name='Science', max_marks=100, class_ids=['3'])
        self.art = SimpleNamespace(pk=12, name='Art', max_marks=50, class_ids=['4'])
        self.grades = [
            make_grade(1, 10, 'assignment', 15, term=1),
            make_grade(1, 10, 'assignment', 18, term=1),
            make_grade(1, 10, 'half-yearly', 82),
        ]

    def test_half_yearly_scenario(self):
        """Test term 1 assignments plus the half-yearly exam."""
        result = compute_student_result(
            self.student, self.grades, [self.maths], YEAR, HALF_YEARLY
        )
        row = result['subjects'][0]
        self.assertEqual(row['total'], Decimal('140'))
        self.assertEqual(row['term1_assignments'], Decimal('33'))
        self.assertEqual(row['term1_count'], 2)
        self.assertEqual(result['total'], Decimal('140'))
        self.assertEqual(result['obtained'], Decimal('115'))
        self.assertEqual(round(result['percentage'], 2), Decimal('82.14'))
        self.assertEqual(result['grade'], 'A')
        self.assertEqual(result['status'], 'pass')

    def test_full_yearly_scenario_with_missing_final(self):
        """Test a missing final adds nothing to obtained but keeps full total."""
        grades = self.grades + [
            make_grade(1, 10, 'assignment', 16, term=2),
            make_grade(1, 10, 'assignment', 19, term=2),
        ]
        result = compute_student_result(self.student, grades, [self.maths], YEAR, FULL_YEARLY)
        row = result['subjects'][0]
        self.assertIsNone(row['final'])
        self.assertEqual(row['assignment_total'], Decimal('68'))
        self.assertEqual(result['total'], Decimal('280'))
        self.assertEqual(result['obtained'], Decimal('150'))
        self.assertEqual(round(result['percentage'], 2), Decimal('53.57'))
        self.assertEqual(result['grade'], 'D')
        self.assertEqual(result['status'], 'pass')

    def test_subject_without_grades_is_excluded(self):
        """Test subjects with no grades do not change totals."""
        with_science = compute_student_result(
            self.student, self.grades, [self.maths, self.science], YEAR, HALF_YEARLY
        )
        without = compute_student_result(
            self.student, self.grades, [self.maths], YEAR, HALF_YEARLY
        )
        self.assertEqual(len(with_science['subjects']), 1)
        self.assertEqual(with_science['total'], without['total'])
        self.assertEqual(with_science['obtained'], without['obtained'])

    def test_subject_not_taught_in_class_is_excluded(self):
        """Test grades for a subject outside the student's class are ignored."""
        grades = self.grades + [make_grade(1, 12, 'half-yearly', 40)]
        rows = aggregate_subject_results(self.student, grades, [self.maths, self.art], YEAR, HALF_YEARLY)
        self.assertEqual([row['subject'].pk for row in rows], [10])

    def test_other_years_are_ignored(self):
        """Test only grades of the requested academic year count."""
        grades = self.grades + [make_grade(1, 10, 'half-yearly', 99, year='2023-24')]
        result = compute_student_result(self.student, grades, [self.maths], YEAR, HALF_YEARLY)
        self.assertEqual(result['obtained'], Decimal('115'))

    def test_repeated_exam_counts_once(self):
        """Test obtained never exceeds total when an exam is stored twice."""
        grades = self.grades + [make_grade(1, 10, 'half-yearly', 82)]
        result = compute_student_result(self.student, grades, [self.maths], YEAR, HALF_YEARLY)
        self.assertEqual(result['obtained'], Decimal('115'))
        self.assertLessEqual(result['obtained'], result['total'])

    def test_aggregation_is_idempotent(self):
        """Test the same inputs give identical results."""
        first = compute_student_result(self.student, self.grades, [self.maths], YEAR, FULL_YEARLY)
        second = compute_student_result(self.student, self.grades, [self.maths], YEAR, FULL_YEARLY)
        self.assertEqual(first, second)

    def test_unknown_mode_raises(self):
        """Test an unknown reporting mode is rejected."""
        with self.assertRaises(ValueError):
            aggregate_subject_results(self.student, self.grades, [self.maths], YEAR, 'quarterly')

    def test_subject_grade_uses_exam_marks(self):
        """Test the per-subject letter comes from exam marks only."""
        rows = aggregate_subject_results(self.student, self.grades, [self.maths], YEAR, HALF_YEARLY)
        self.assertEqual(rows[0]['exam_percentage'], Decimal('82'))
        self.assertEqual(rows[0]['grade'], 'A')


class GradebookDataMixin:
    """Two classes, one subject each, an admin and a teacher of class 3."""

    def setUp(self):
        self.class3 = SchoolClass.objects.create(id='3', name='Class 3', sections=['A', 'B'])
        self.class4 = SchoolClass.objects.create(id='4', name='Class 4', sections=['A'])
        self.class5 = SchoolClass.objects.create(id='5', name='Class 5', sections=['A'])

        self.maths = Subject.objects.create(name='Mathematics', code='MATH', max_marks=100, passing_marks=33)
        self.maths.classes.add(self.class3, self.class4, self.class5)

        self.student = Student.objects.create(
            name='Asha Rao', roll_number='1', current_class=self.class3, section='A'
        )
        self.other_student = Student.objects.create(
            name='Ravi Kumar', roll_number='1', current_class=self.class5, section='A'
        )

        self.admin = User.objects.create_admin('principal', password='adminpass123', name='Principal')
        self.teacher = User.objects.create_teacher('teacher1', password='teachpass123', name='Meera')
        self.teacher.assigned_classes.add(self.class3)

    def add_grade(self, student, exam_type, marks, term=None, subject=None, **extra):
        return Grade.objects.create(
            student=student,
            subject=subject or self.maths,
            exam_type=exam_type,
            term=term,
            marks_obtained=Decimal(str(marks)),
            exam_date=date(2024, 9, 1),
            academic_year=extra.pop('academic_year', YEAR),
            **extra
        )


class GradeModelTest(GradebookDataMixin, TestCase):
    """Tests for Grade validation."""

    def build(self, **kwargs):
        data = {
            'student': self.student,
            'subject': self.maths,
            'exam_type': Grade.ExamType.ASSIGNMENT,
            'term': 1,
            'marks_obtained': Decimal('15'),
            'exam_date': date(2024, 9, 1),
            'academic_year': YEAR,
        }
        data.update(kwargs)
        return Grade(**data)

    def test_assignment_requires_term(self):
        """Test an assignment without a term is invalid."""
        with self.assertRaises(ValidationError) as ctx:
            self.build(term=None).full_clean()
        self.assertIn('term', ctx.exception.message_dict)

    def test_exam_term_is_cleared(self):
        """Test exams never carry a term."""
        grade = self.build(exam_type=Grade.ExamType.FINAL, term=2, marks_obtained=Decimal('70'))
        grade.full_clean()
        self.assertIsNone(grade.term)

    def test_assignment_marks_bound(self):
        """Test assignment marks cannot exceed the assignment maximum."""
        with self.assertRaises(ValidationError) as ctx:
            self.build(marks_obtained=Decimal('21')).full_clean()
        self.assertIn('marks_obtained', ctx.exception.message_dict)

    def test_exam_marks_bound(self):
        """Test exam marks cannot exceed the subject's max marks."""
        with self.assertRaises(ValidationError):
            self.build(exam_type='half-yearly', term=None, marks_obtained=Decimal('101')).full_clean()
        self.build(exam_type='half-yearly', term=None, marks_obtained=Decimal('100')).full_clean()

    def test_subject_must_be_taught_in_class(self):
        """Test a subject outside the student's class is rejected."""
        art = Subject.objects.create(name='Art', code='ART')
        with self.assertRaises(ValidationError) as ctx:
            self.build(subject=art).full_clean()
        self.assertIn('subject', ctx.exception.message_dict)

    def test_academic_year_format(self):
        """Test academic year must look like 2024-25."""
        with self.assertRaises(ValidationError) as ctx:
            self.build(academic_year='2024').full_clean()
        self.assertIn('academic_year', ctx.exception.message_dict)

    def test_deleting_student_deletes_grades(self):
        """Test grades go with their student."""
        self.add_grade(self.student, 'final', 70)
        self.student.delete()
        self.assertFalse(Grade.objects.exists())

    def test_deleting_subject_deletes_grades(self):
        """Test grades go with their subject."""
        self.add_grade(self.student, 'final', 70)
        self.maths.delete()
        self.assertFalse(Grade.objects.exists())


class AssignmentLimitTest(GradebookDataMixin, TestCase):
    """Tests for the per-term assignment limit."""

    def test_third_assignment_rejected(self):
        """Test a third assignment in the same term is rejected and nothing changes."""
        self.add_grade(self.student, 'assignment', 15, term=1)
        self.add_grade(self.student, 'assignment', 18, term=1)
        before = list(Grade.objects.order_by('pk').values_list('pk', 'marks_obtained'))

        with self.assertRaises(ValidationError) as ctx:
            validate_assignment_limit(self.student, self.maths, YEAR, 1)
        self.assertEqual(ctx.exception.code, 'assignment_limit')

        form = GradeForm(data={
            'student': self.student.pk,
            'subject': self.maths.pk,
            'exam_type': 'assignment',
            'term': '1',
            'marks_obtained': '12',
            'exam_date': '2024-10-01',
            'academic_year': YEAR,
        }, user=self.admin)
        self.assertFalse(form.is_valid())
        self.assertIn('Maximum 2 assignments allowed per term', str(form.errors))
        after = list(Grade.objects.order_by('pk').values_list('pk', 'marks_obtained'))
        self.assertEqual(before, after)

    def test_other_term_still_open(self):
        """Test the limit is per term."""
        self.add_grade(self.student, 'assignment', 15, term=1)
        self.add_grade(self.student, 'assignment', 18, term=1)
        self.assertEqual(validate_assignment_limit(self.student, self.maths, YEAR, 2), 0)

    def test_prepare_fills_blank_remarks(self):
        """Test default remarks name the term and assignment number."""
        self.add_grade(self.student, 'assignment', 15, term=2)
        grade = Grade(
            student=self.student, subject=self.maths, exam_type='assignment', term=2,
            marks_obtained=Decimal('10'), exam_date=date(2024, 12, 1), academic_year=YEAR,
        )
        self.assertEqual(prepare_assignment(grade), 2)
        self.assertEqual(grade.remarks, 'Term 2 Assignment 2')

    def test_prepare_keeps_written_remarks(self):
        """Test teacher remarks are left alone."""
        grade = Grade(
            student=self.student, subject=self.maths, exam_type='assignment', term=1,
            marks_obtained=Decimal('10'), exam_date=date(2024, 9, 1), academic_year=YEAR,
            remarks='Neat work',
        )
        prepare_assignment(grade)
        self.assertEqual(grade.remarks, 'Neat work')

    def test_editing_existing_assignment_allowed(self):
        """Test an existing assignment can be edited when the term is full."""
        first = self.add_grade(self.student, 'assignment', 15, term=1)
        self.add_grade(self.student, 'assignment', 18, term=1)
        first.marks_obtained = Decimal('17')
        first.full_clean()


class ExamSlotTest(GradebookDataMixin, TestCase):
    """Tests for one half-yearly and one final per subject and year."""

    def exam_form(self, exam_type, marks):
        return GradeForm(data={
            'student': self.student.pk,
            'subject': self.maths.pk,
            'exam_type': exam_type,
            'term': '',
            'marks_obtained': marks,
            'exam_date': '2024-12-01',
            'academic_year': YEAR,
        }, user=self.admin)

    def test_second_half_yearly_rejected(self):
        """Test the same exam cannot be entered twice."""
        self.add_grade(self.student, 'assignment', 15, term=1)
        self.add_grade(self.student, 'assignment', 18, term=1)
        self.add_grade(self.student, 'half-yearly', 82)

        form = self.exam_form('half-yearly', '82')
        self.assertFalse(form.is_valid())
        self.assertIn('already recorded', str(form.errors))
        self.assertEqual(Grade.objects.filter(exam_type='half-yearly').count(), 1)

    def test_second_final_rejected(self):
        """Test a repeated final is rejected by model validation."""
        self.add_grade(self.student, 'final', 70)
        duplicate = Grade(
            student=self.student, subject=self.maths, exam_type='final',
            marks_obtained=Decimal('60'), exam_date=date(2025, 3, 1), academic_year=YEAR,
        )
        with self.assertRaises(ValidationError) as ctx:
            duplicate.full_clean()
        self.assertIn('already recorded', ' '.join(ctx.exception.messages))

    def test_other_year_and_editing_allowed(self):
        """Test the rule is per academic year and an exam can be edited."""
        grade = self.add_grade(self.student, 'half-yearly', 82)
        self.assertTrue(self.exam_form('final', '70').is_valid())
        grade.marks_obtained = Decimal('90')
        grade.full_clean()

        earlier = Grade(
            student=self.student, subject=self.maths, exam_type='half-yearly',
            marks_obtained=Decimal('50'), exam_date=date(2023, 12, 1), academic_year='2023-24',
        )
        earlier.full_clean()


class AnalyticsTest(GradebookDataMixin, TestCase):
    """Tests for the analytics roll-up."""

    def setUp(self):
        super().setUp()
        self.class4_student = Student.objects.create(
            name='Kiran Das', roll_number='7', current_class=self.class4, section='A'
        )
        self.add_grade(self.student, 'half-yearly', 80)
        self.add_grade(self.student, 'final', 60)
        self.add_grade(self.class4_student, 'half-yearly', 30)
        self.add_grade(self.other_student, 'half-yearly', 95)

    def test_admin_sees_everything(self):
        """Test admin analytics cover every class."""
        data = build_analytics(self.admin, YEAR)
        self.assertEqual(data['total_students'], 3)
        self.assertEqual(data['total_grades'], 4)
        self.assertEqual(len(data['class_performance']), 3)

    def test_teacher_sees_only_assigned_classes(self):
        """Test a teacher of classes 3 and 4 never sees class 5."""
        self.teacher.assigned_classes.add(self.class4)
        data = build_analytics(self.teacher, YEAR)
        self.assertEqual(data['total_students'], 2)
        self.assertEqual(data['total_grades'], 3)
        self.assertEqual(
            sorted(row['class_id'] for row in data['class_performance']), ['3', '4']
        )
        names = [r['student'].name for r in data['student_results']]
        self.assertNotIn('Ravi Kumar', names)
        # 80 and 60 pass, 30 fails
        self.assertEqual(data['overall_pass_rate'], Decimal('66.7'))

    def test_grade_distribution_has_all_buckets(self):
        """Test all seven letters are present."""
        data = build_analytics(self.admin, YEAR)
        letters = [row['grade'] for row in data['grade_distribution']]
        self.assertEqual(letters, ['A+', 'A', 'B', 'C', 'D', 'E', 'F'])
        self.assertEqual(sum(row['count'] for row in data['grade_distribution']), 3)

    def test_subject_performance_only_graded(self):
        """Test subjects without grades are not listed."""
        Subject.objects.create(name='Art', code='ART')
        data = build_analytics(self.admin, YEAR)
        self.assertEqual([row['name'] for row in data['subject_performance']], ['Mathematics'])

    def test_exam_type_performance(self):
        """Test only exam types with records are listed."""
        data = build_analytics(self.admin, YEAR)
        self.assertEqual(
            [row['exam_type'] for row in data['exam_type_performance']],
            ['half-yearly', 'final']
        )

    def test_class_filter(self):
        """Test narrowing analytics to one class."""
        data = build_analytics(self.admin, YEAR, class_id='4')
        self.assertEqual(data['total_students'], 1)
        self.assertEqual(data['class_performance'][0]['class_id'], '4')

    def test_top_performers(self):
        """Test students are ranked by percentage."""
        data = build_analytics(self.admin, YEAR, mode=HALF_YEARLY)
        ranked = top_performers(data['student_results'], limit=2)
        self.assertEqual(ranked[0]['student'].name, 'Ravi Kumar')
        self.assertEqual(len(ranked), 2)


class ReportTest(GradebookDataMixin, TestCase):
    """Tests for report context and file names."""

    def test_report_filename(self):
        """Test spaces in the name become underscores."""
        self.assertEqual(
            report_filename(self.student, HALF_YEARLY, YEAR),
            'Asha_Rao_1_HalfYearly_2024-25.pdf'
        )
        self.assertEqual(
            report_filename(self.student, FULL_YEARLY, YEAR),
            'Asha_Rao_1_Annual_2024-25.pdf'
        )

    @override_settings(SCHOOL_NAME='Test School', SCHOOL_TAGLINE='Learn', SCHOOL_CONTACT='Phone 123')
    def test_report_context(self):
        """Test the letterhead, title and result block."""
        self.add_grade(self.student, 'assignment', 15, term=1)
        self.add_grade(self.student, 'half-yearly', 82)
        context = build_report_context(self.student, YEAR, HALF_YEARLY)
        self.assertEqual(context['school']['name'], 'Test School')
        self.assertEqual(context['title'], 'HALF YEARLY RESULT')
        self.assertEqual(context['class_name'], 'Class 3')
        self.assertEqual(context['result']['obtained'], Decimal('97'))
        self.assertEqual(context['term_assignment_cap'], 40)

    def test_annual_title(self):
        """Test the full-yearly title."""
        context = build_report_context(self.student, YEAR, FULL_YEARLY)
        self.assertEqual(context['title'], 'ANNUAL RESULT')
        self.assertEqual(context['subjects'], [])

    @override_settings(SCHOOL_NAME='Test School')
    def test_report_html_half_yearly(self):
        """Test the half-yearly card shows term 1 assignments out of 40."""
        self.add_grade(self.student, 'assignment', 15, term=1)
        self.add_grade(self.student, 'assignment', 18, term=1)
        self.add_grade(self.student, 'half-yearly', 82)
        html = render_report_html(build_report_context(self.student, YEAR, HALF_YEARLY))
        self.assertIn('Test School', html)
        self.assertIn('HALF YEARLY RESULT 2024-25', html)
        self.assertIn('33/40', html)
        self.assertIn('82/100', html)
        self.assertNotIn('Final', html)

    def test_report_html_annual(self):
        """Test the annual card shows the year's assignments out of 80."""
        self.add_grade(self.student, 'assignment', 16, term=2)
        self.add_grade(self.student, 'half-yearly', 60)
        html = render_report_html(build_report_context(self.student, YEAR, FULL_YEARLY))
        self.assertIn('ANNUAL RESULT 2024-25', html)
        self.assertIn('16/80', html)
        self.assertIn('Final', html)


class GradeEntryViewTest(GradebookDataMixin, TestCase):
    """Tests for grade entry views."""

    def post_data(self, **kwargs):
        data = {
            'student': self.student.pk,
            'subject': self.maths.pk,
            'exam_type': 'assignment',
            'term': '1',
            'marks_obtained': '15',
            'exam_date': '2024-09-01',
            'academic_year': YEAR,
            'remarks': '',
        }
        data.update(kwargs)
        return data

    def test_entry_page_requires_login(self):
        """Test anonymous users are sent to login."""
        response = self.client.get(reverse('gradebook:grade_entry'))
        self.assertEqual(response.status_code, 302)

    def test_entry_page_renders(self):
        """Test the entry page with a student overview."""
        self.add_grade(self.student, 'assignment', 15, term=1)
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('gradebook:grade_entry'), {'student': self.student.pk})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['overview']['student'], self.student)

    def test_create_assignment(self):
        """Test a valid assignment is saved with default remarks."""
        self.client.force_login(self.teacher)
        response = self.client.post(reverse('gradebook:grade_entry'), self.post_data())
        self.assertEqual(response.status_code, 302)
        grade = Grade.objects.get()
        self.assertEqual(grade.term, 1)
        self.assertEqual(grade.remarks, 'Term 1 Assignment 1')

    def test_create_for_other_class_forbidden(self):
        """Test a teacher cannot enter grades outside their classes."""
        self.client.force_login(self.teacher)
        response = self.client.post(
            reverse('gradebook:grade_entry'), self.post_data(student=self.other_student.pk)
        )
        self.assertEqual(response.status_code, 403)
        self.assertFalse(Grade.objects.exists())

    def test_third_assignment_returns_422(self):
        """Test the limit error is reported inline."""
        self.add_grade(self.student, 'assignment', 15, term=1)
        self.add_grade(self.student, 'assignment', 18, term=1)
        self.client.force_login(self.teacher)
        response = self.client.post(reverse('gradebook:grade_entry'), self.post_data())
        self.assertEqual(response.status_code, 422)
        self.assertEqual(Grade.objects.count(), 2)

    def test_malformed_student_id(self):
        """Test a non-numeric student is an invalid choice, not a server error."""
        self.client.force_login(self.teacher)
        response = self.client.post(reverse('gradebook:grade_entry'), self.post_data(student='abc'))
        self.assertEqual(response.status_code, 422)
        self.assertFalse(Grade.objects.exists())

        response = self.client.get(reverse('gradebook:grade_entry'), {'student': 'abc'})
        self.assertEqual(response.status_code, 200)

    def test_edit_grade(self):
        """Test editing marks of an existing grade."""
        grade = self.add_grade(self.student, 'half-yearly', 60)
        self.client.force_login(self.teacher)
        response = self.client.post(
            reverse('gradebook:grade_edit', args=[grade.pk]),
            self.post_data(exam_type='half-yearly', term='', marks_obtained='75'),
        )
        self.assertEqual(response.status_code, 302)
        grade.refresh_from_db()
        self.assertEqual(grade.marks_obtained, Decimal('75'))

    def test_delete_other_class_grade_not_found(self):
        """Test a teacher cannot delete grades outside their classes."""
        grade = self.add_grade(self.other_student, 'final', 60)
        self.client.force_login(self.teacher)
        response = self.client.post(reverse('gradebook:grade_delete', args=[grade.pk]))
        self.assertEqual(response.status_code, 404)
        self.assertTrue(Grade.objects.filter(pk=grade.pk).exists())

    def test_delete_grade(self):
        """Test deleting a grade."""
        grade = self.add_grade(self.student, 'final', 60)
        self.client.force_login(self.admin)
        response = self.client.post(reverse('gradebook:grade_delete', args=[grade.pk]))
        self.assertEqual(response.status_code, 302)
        self.assertFalse(Grade.objects.exists())


class ReportViewTest(GradebookDataMixin, TestCase):
    """Tests for report list, PDF download and bulk export."""

    def test_report_list_scoped_to_teacher(self):
        """Test teachers only see their own students in the report list."""
        self.add_grade(self.student, 'half-yearly', 70)
        self.add_grade(self.other_student, 'half-yearly', 70)
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('gradebook:reports'))
        self.assertEqual(response.status_code, 200)
        students = [r['student'] for r in response.context['results']]
        self.assertEqual(students, [self.student])

    def test_report_list_search(self):
        """Test searching by roll number or name."""
        self.client.force_login(self.admin)
        response = self.client.get(reverse('gradebook:reports'), {'search': 'ravi', 'mode': FULL_YEARLY})
        self.assertEqual([r['student'] for r in response.context['results']], [self.other_student])
        self.assertEqual(response.context['mode'], FULL_YEARLY)

    def test_pdf_forbidden_for_other_class(self):
        """Test the class gate runs before any PDF work."""
        self.client.force_login(self.teacher)
        with mock.patch('gradebook.views.reports.generate_report_pdf') as generate:
            response = self.client.get(reverse('gradebook:report_pdf', args=[self.other_student.pk]))
        self.assertEqual(response.status_code, 403)
        generate.assert_not_called()

    def test_pdf_download(self):
        """Test the PDF is served with the report file name."""
        self.client.force_login(self.teacher)
        with mock.patch(
            'gradebook.views.reports.generate_report_pdf',
            return_value=BytesIO(b'%PDF-1.4 test'),
        ):
            response = self.client.get(
                reverse('gradebook:report_pdf', args=[self.student.pk]),
                {'mode': FULL_YEARLY, 'academic_year': YEAR},
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertIn('Asha_Rao_1_Annual_2024-25.pdf', response['Content-Disposition'])

    def test_bulk_export_queues_accessible_students(self):
        """Test only accessible students are queued."""
        from .tasks import export_reports_zip

        self.client.force_login(self.teacher)
        with mock.patch.object(export_reports_zip, 'delay', return_value=mock.Mock(id='task-1')) as delay:
            response = self.client.post(reverse('gradebook:bulk_export_start'), {
                'student_ids': [self.student.pk, self.other_student.pk],
                'mode': HALF_YEARLY,
                'academic_year': YEAR,
            })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['task_id'], 'task-1')
        delay.assert_called_once_with(self.teacher.pk, [self.student.pk], YEAR, HALF_YEARLY)


class ExportTaskTest(GradebookDataMixin, TestCase):
    """Tests for the bulk report ZIP task."""

    def setUp(self):
        super().setUp()
        self.media_root = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.media_root, ignore_errors=True)

    def test_zip_contains_accessible_reports(self):
        """Test one PDF per accessible student is written."""
        from .tasks import export_reports_zip

        with override_settings(MEDIA_ROOT=self.media_root, GRADEBOOK_BULK_REPORT_SPACING=0), \
                mock.patch('gradebook.tasks.generate_report_pdf', return_value=BytesIO(b'%PDF')), \
                mock.patch.object(export_reports_zip, 'update_state'):
            result = export_reports_zip(
                self.teacher.pk, [self.student.pk, self.other_student.pk], YEAR, HALF_YEARLY
            )

        self.assertTrue(result['success'])
        self.assertEqual(result['total'], 1)
        path = os.path.join(self.media_root, 'exports', result['filename'])
        with zipfile.ZipFile(path) as zf:
            self.assertEqual(zf.namelist(), ['Asha_Rao_1_HalfYearly_2024-25.pdf'])
        self.assertTrue(result['filename'].startswith(f'reports_{self.teacher.pk}_'))

    def test_same_name_and_roll_in_two_classes(self):
        """Test every student gets a distinct file in the ZIP."""
        from .tasks import export_reports_zip

        twin = Student.objects.create(
            name='Asha Rao', roll_number='1', current_class=self.class4, section='A'
        )
        with override_settings(MEDIA_ROOT=self.media_root, GRADEBOOK_BULK_REPORT_SPACING=0), \
                mock.patch('gradebook.tasks.generate_report_pdf', return_value=BytesIO(b'%PDF')), \
                mock.patch.object(export_reports_zip, 'update_state'):
            result = export_reports_zip(self.admin.pk, [self.student.pk, twin.pk], YEAR, HALF_YEARLY)

        path = os.path.join(self.media_root, 'exports', result['filename'])
        with zipfile.ZipFile(path) as zf:
            self.assertEqual(zf.namelist(), [
                'Asha_Rao_1_HalfYearly_2024-25.pdf',
                'Asha_Rao_1_HalfYearly_2024-25_Class4.pdf',
            ])

    def write_export(self, filename):
        export_dir = os.path.join(self.media_root, 'exports')
        os.makedirs(export_dir, exist_ok=True)
        with zipfile.ZipFile(os.path.join(export_dir, filename), 'w') as zf:
            zf.writestr('Ravi_Kumar_1_Annual_2024-25.pdf', b'%PDF')

    def test_teacher_cannot_download_admin_export(self):
        """Test a teacher gets 404 for an export requested by someone else."""
        filename = f'reports_{self.admin.pk}_full-yearly_{YEAR}_abcd1234.zip'
        self.write_export(filename)
        self.client.force_login(self.teacher)
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.get(reverse('gradebook:bulk_export_download', args=[filename]))
        self.assertEqual(response.status_code, 404)

    def test_requester_and_admin_can_download(self):
        """Test the requesting teacher and admins get the ZIP."""
        filename = f'reports_{self.teacher.pk}_half-yearly_{YEAR}_abcd1234.zip'
        self.write_export(filename)
        with override_settings(MEDIA_ROOT=self.media_root):
            for user in (self.teacher, self.admin):
                self.client.force_login(user)
                response = self.client.get(reverse('gradebook:bulk_export_download', args=[filename]))
                self.assertEqual(response.status_code, 200)
                response.close()

    def test_status_hidden_from_other_teacher(self):
        """Test task status is only shown to the requester or an admin."""
        other = User.objects.create_teacher('teacher2', password='teachpass123')
        finished = mock.Mock(state='SUCCESS', result={
            'success': True, 'filename': 'reports_x.zip', 'user_id': self.teacher.pk, 'total': 1,
        })
        url = reverse('gradebook:bulk_export_status', args=['task-1'])
        with mock.patch('celery.result.AsyncResult', return_value=finished):
            self.client.force_login(other)
            self.assertEqual(self.client.get(url).status_code, 404)
            self.client.force_login(self.teacher)
            response = self.client.get(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['filename'], 'reports_x.zip')


class AnalyticsViewTest(GradebookDataMixin, TestCase):
    """Tests for analytics views."""

    def test_analytics_page(self):
        """Test the analytics page renders for a teacher."""
        self.add_grade(self.student, 'half-yearly', 70)
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('gradebook:analytics'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['analytics']['total_students'], 1)

    def test_analytics_export(self):
        """Test the Excel export."""
        self.add_grade(self.student, 'half-yearly', 70)
        self.client.force_login(self.admin)
        response = self.client.get(reverse('gradebook:analytics_export'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response['Content-Type'],
            'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
        )


class BackfillGradeTermsTest(GradebookDataMixin, TestCase):
    """Tests for the backfill_grade_terms command."""

    def test_backfill(self):
        """Test terms are read from remarks."""
        grade = self.add_grade(self.student, 'assignment', 15, remarks='Term 2 Assignment 1')
        untouched = self.add_grade(self.student, 'assignment', 12, remarks='Homework')

        out = StringIO()
        call_command('backfill_grade_terms', '--dry-run', stdout=out)
        grade.refresh_from_db()
        self.assertIsNone(grade.term)
        self.assertIn('[DRY RUN]', out.getvalue())

        call_command('backfill_grade_terms', stdout=StringIO())
        grade.refresh_from_db()
        untouched.refresh_from_db()
        self.assertEqual(grade.term, 2)
        self.assertIsNone(untouched.term)
