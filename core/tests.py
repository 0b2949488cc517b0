import json
from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied, ValidationError
from django.test import RequestFactory, TestCase
from django.urls import reverse

from academics.models import SchoolClass, Subject
from communications.models import Announcement
from gradebook.models import Grade
from students.models import Student
from .access import (
    accessible_classes, accessible_grades, accessible_students, can_access_class,
    is_school_admin,
)
from .serializers import (
    camelize, parse_payload, serialize_instance, snakeize, to_camel_case, to_snake_case,
)
from .services import DataService
from .templatetags.core_tags import get_navigation_items, marks

User = get_user_model()

YEAR = '2024-25'


class SchoolDataMixin:
    def setUp(self):
        self.class3 = SchoolClass.objects.create(id='3', name='Class 3', sections=['A'])
        self.class4 = SchoolClass.objects.create(id='4', name='Class 4', sections=['A'])
        self.class5 = SchoolClass.objects.create(id='5', name='Class 5', sections=['A'])
        self.maths = Subject.objects.create(name='Mathematics', code='MATH', max_marks=100, passing_marks=33)
        self.maths.classes.add(self.class3, self.class4, self.class5)

        self.s3 = Student.objects.create(name='Asha Rao', roll_number='1', current_class=self.class3, section='A')
        self.s4 = Student.objects.create(name='Dev Shah', roll_number='1', current_class=self.class4, section='A')
        self.s5 = Student.objects.create(name='Ravi Kumar', roll_number='1', current_class=self.class5, section='A')

        self.admin = User.objects.create_admin('principal', password='adminpass123')
        self.teacher = User.objects.create_teacher('teacher1', password='teachpass123')
        self.teacher.assigned_classes.add(self.class3, self.class4)

    def add_grade(self, student, exam_type='final', marks=70, term=None):
        return Grade.objects.create(
            student=student, subject=self.maths, exam_type=exam_type, term=term,
            marks_obtained=Decimal(str(marks)), exam_date=date(2025, 3, 1), academic_year=YEAR,
        )


class AccessGateTest(SchoolDataMixin, TestCase):
    """Tests for role-based visibility."""

    def test_admin_sees_everything(self):
        """Test admins pass every class check."""
        self.assertTrue(can_access_class(self.admin, '5'))
        self.assertEqual(accessible_students(self.admin).count(), 3)

    def test_teacher_sees_assigned_classes(self):
        """Test teachers see classes 3 and 4 only."""
        self.assertTrue(can_access_class(self.teacher, '3'))
        self.assertTrue(can_access_class(self.teacher, 4))
        self.assertFalse(can_access_class(self.teacher, '5'))
        self.assertEqual(set(accessible_students(self.teacher)), {self.s3, self.s4})
        self.assertEqual(set(accessible_classes(self.teacher)), {self.class3, self.class4})

    def test_teacher_grades_scoped(self):
        """Test grade visibility follows the student's class."""
        visible = self.add_grade(self.s3)
        self.add_grade(self.s5)
        self.assertEqual(list(accessible_grades(self.teacher)), [visible])

    def test_teacher_without_classes(self):
        """Test a teacher with no classes sees nothing."""
        loner = User.objects.create_teacher('loner')
        self.assertFalse(accessible_students(loner).exists())
        self.assertFalse(can_access_class(loner, '3'))

    def test_superuser_is_admin(self):
        """Test superusers count as admins."""
        root = User.objects.create_superuser('root', 'root@example.com', 'rootpass123')
        self.assertTrue(is_school_admin(root))


class SerializerTest(TestCase):
    """Tests for snake_case and camelCase mapping."""

    def test_case_conversion(self):
        """Test single names convert both ways."""
        self.assertEqual(to_camel_case('marks_obtained'), 'marksObtained')
        self.assertEqual(to_snake_case('marksObtained'), 'marks_obtained')
        self.assertEqual(to_camel_case('name'), 'name')

    def test_nested_conversion(self):
        """Test dicts and lists are converted recursively."""
        data = {'assigned_classes': [{'class_id': '3'}], 'roll_number': '1'}
        self.assertEqual(camelize(data), {'assignedClasses': [{'classId': '3'}], 'rollNumber': '1'})
        self.assertEqual(snakeize(camelize(data)), data)

    def test_parse_payload_maps_keys(self):
        """Test aliases, foreign keys and unknown keys."""
        fields, m2m = parse_payload('students', {
            'name': 'Asha', 'rollNumber': '7', 'class': '3', 'bogus': 1, 'id': 99,
        })
        self.assertEqual(fields, {'name': 'Asha', 'roll_number': '7', 'current_class_id': '3'})
        self.assertEqual(m2m, {})

        fields, m2m = parse_payload('subjects', {'maxMarks': 50, 'class': ['3', '4']})
        self.assertEqual(fields, {'max_marks': 50})
        self.assertEqual(m2m, {'classes': ['3', '4']})

        fields, _ = parse_payload('classes', {'assignedTeacherId': 5})
        self.assertEqual(fields, {'assigned_teacher_id': 5})


class SerializeInstanceTest(SchoolDataMixin, TestCase):
    """Tests for record serialization."""

    def test_grade(self):
        """Test a grade is returned with camelCase keys and plain values."""
        grade = self.add_grade(self.s3, 'assignment', 15, term=1)
        data = serialize_instance('grades', grade)
        self.assertEqual(data['id'], str(grade.pk))
        self.assertEqual(data['studentId'], str(self.s3.pk))
        self.assertEqual(data['examType'], 'assignment')
        self.assertEqual(data['marksObtained'], 15.0)
        self.assertEqual(data['examDate'], '2025-03-01')

    def test_student_class_alias(self):
        """Test a student's class is exposed under 'class'."""
        data = serialize_instance('students', self.s3)
        self.assertEqual(data['class'], '3')
        self.assertEqual(data['rollNumber'], '1')

    def test_user_has_no_password(self):
        """Test passwords never leave the server."""
        data = serialize_instance('users', self.teacher)
        self.assertNotIn('password', data)
        self.assertEqual(sorted(data['assignedClasses']), ['3', '4'])


class DataServiceTest(SchoolDataMixin, TestCase):
    """Tests for create, partial update, delete and refresh."""

    def grade_payload(self, **kwargs):
        payload = {
            'studentId': self.s3.pk,
            'subjectId': self.maths.pk,
            'examType': 'assignment',
            'term': 1,
            'marksObtained': 15,
            'examDate': '2024-09-01',
            'academicYear': YEAR,
        }
        payload.update(kwargs)
        return payload

    def test_create_grade(self):
        """Test a created assignment gets default remarks."""
        record = DataService(self.teacher).create('grades', self.grade_payload())
        self.assertEqual(record['remarks'], 'Term 1 Assignment 1')
        self.assertEqual(Grade.objects.count(), 1)

    def test_third_assignment_rejected(self):
        """Test the per-term limit holds and nothing is written."""
        service = DataService(self.teacher)
        service.create('grades', self.grade_payload())
        service.create('grades', self.grade_payload(marksObtained=18))
        with self.assertRaises(ValidationError):
            service.create('grades', self.grade_payload(marksObtained=12))
        self.assertEqual(Grade.objects.count(), 2)

    def test_teacher_cannot_grade_other_class(self):
        """Test grades for unassigned classes are refused before writing."""
        with self.assertRaises(PermissionDenied):
            DataService(self.teacher).create('grades', self.grade_payload(studentId=self.s5.pk))
        self.assertFalse(Grade.objects.exists())

    def test_partial_update_writes_only_given_fields(self):
        """Test fields missing from the payload are left alone."""
        grade = self.add_grade(self.s3, 'assignment', 15, term=1)
        Grade.objects.filter(pk=grade.pk).update(remarks='kept')
        record = DataService(self.teacher).update('grades', grade.pk, {'marksObtained': 18})
        grade.refresh_from_db()
        self.assertEqual(grade.marks_obtained, Decimal('18'))
        self.assertEqual(grade.remarks, 'kept')
        self.assertEqual(record['marksObtained'], 18.0)

    def test_update_marks_over_maximum(self):
        """Test marks above the bound are a validation error."""
        grade = self.add_grade(self.s3, 'assignment', 15, term=1)
        with self.assertRaises(ValidationError):
            DataService(self.admin).update('grades', grade.pk, {'marksObtained': 25})
        grade.refresh_from_db()
        self.assertEqual(grade.marks_obtained, Decimal('15'))

    def test_teacher_cannot_change_subjects(self):
        """Test subjects are admin only."""
        with self.assertRaises(PermissionDenied):
            DataService(self.teacher).update('subjects', self.maths.pk, {'maxMarks': 50})

    def test_subject_passing_over_max(self):
        """Test passing marks may not exceed max marks."""
        with self.assertRaises(ValidationError):
            DataService(self.admin).create('subjects', {
                'name': 'Art', 'code': 'ART', 'maxMarks': 50, 'passingMarks': 60,
            })
        self.assertFalse(Subject.objects.filter(code='ART').exists())

    def test_delete_subject_cascades(self):
        """Test deleting a subject removes its grades."""
        self.add_grade(self.s3)
        DataService(self.admin).delete('subjects', self.maths.pk)
        self.assertFalse(Grade.objects.exists())

    def test_create_class_with_teacher(self):
        """Test a class teacher also gets the class assigned."""
        other = User.objects.create_teacher('teacher2')
        record = DataService(self.admin).create('classes', {
            'id': '6', 'name': 'Class 6', 'sections': ['A', 'B'], 'assignedTeacherId': other.pk,
        })
        self.assertEqual(record['assignedTeacherId'], str(other.pk))
        self.assertEqual(other.get_assigned_class_ids(), ['6'])

    def test_delete_user_unassigns(self):
        """Test deleting a teacher clears their class teacher role."""
        self.class3.assigned_teacher = self.teacher
        self.class3.save()
        DataService(self.admin).delete('users', self.teacher.pk)
        self.class3.refresh_from_db()
        self.assertIsNone(self.class3.assigned_teacher)

    def test_missing_record(self):
        """Test updating an unknown record raises DoesNotExist."""
        with self.assertRaises(Student.DoesNotExist):
            DataService(self.admin).update('students', 999999, {'name': 'Nobody'})

    def test_refresh_scoped_for_teacher(self):
        """Test a teacher's refresh holds only their classes and themselves."""
        self.add_grade(self.s3)
        self.add_grade(self.s5)
        data = DataService(self.teacher).refresh()
        self.assertEqual(set(data), {'users', 'classes', 'subjects', 'students', 'grades'})
        self.assertEqual({s['class'] for s in data['students']}, {'3', '4'})
        self.assertEqual(len(data['grades']), 1)
        self.assertEqual([u['username'] for u in data['users']], ['teacher1'])


class ApiViewTest(SchoolDataMixin, TestCase):
    """Tests for the JSON API."""

    def test_requires_login(self):
        """Test anonymous calls get 401."""
        response = self.client.get(reverse('core:api_refresh'))
        self.assertEqual(response.status_code, 401)

    def test_refresh(self):
        """Test refresh returns every collection."""
        self.client.force_login(self.admin)
        response = self.client.get(reverse('core:api_refresh'))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(len(body['students']), 3)

    def test_unknown_collection(self):
        """Test an unknown collection is a 404."""
        self.client.force_login(self.admin)
        response = self.client.get(reverse('core:api_collection', args=['houses']))
        self.assertEqual(response.status_code, 404)

    def test_create_student(self):
        """Test POST creates and returns the record."""
        self.client.force_login(self.teacher)
        response = self.client.post(
            reverse('core:api_collection', args=['students']),
            data=json.dumps({'name': 'Zoya Ali', 'rollNumber': '2', 'class': '3', 'section': 'A'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['data']['name'], 'Zoya Ali')

    def test_validation_error(self):
        """Test an invalid section is answered with 400 and field errors."""
        self.client.force_login(self.admin)
        response = self.client.post(
            reverse('core:api_collection', args=['students']),
            data=json.dumps({'name': 'Zoya Ali', 'rollNumber': '2', 'class': '3', 'section': 'Z'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn('section', response.json()['errors'])

    def test_other_class_student_hidden(self):
        """Test another class's student is out of a teacher's reach."""
        self.client.force_login(self.teacher)
        response = self.client.patch(
            reverse('core:api_record', args=['students', self.s5.pk]),
            data=json.dumps({'name': 'Changed'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 404)
        self.s5.refresh_from_db()
        self.assertEqual(self.s5.name, 'Ravi Kumar')

    def test_patch_and_delete(self):
        """Test partial update then delete of a student."""
        self.client.force_login(self.admin)
        url = reverse('core:api_record', args=['students', self.s3.pk])
        response = self.client.patch(url, data=json.dumps({'fatherName': 'Rao'}), content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['fatherName'], 'Rao')

        response = self.client.delete(url)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Student.objects.filter(pk=self.s3.pk).exists())

    def test_bad_json(self):
        """Test a malformed body is a 400."""
        self.client.force_login(self.admin)
        response = self.client.post(
            reverse('core:api_collection', args=['students']),
            data='{not json', content_type='application/json',
        )
        self.assertEqual(response.status_code, 400)

    def test_malformed_record_id(self):
        """Test ids that cannot match a record are a 404."""
        self.client.force_login(self.admin)
        for entity in ('students', 'grades', 'users'):
            url = reverse('core:api_record', args=[entity, 'abc'])
            self.assertEqual(self.client.get(url).status_code, 404)
            self.assertEqual(self.client.delete(url).status_code, 404)


class DashboardTest(SchoolDataMixin, TestCase):
    """Tests for the dashboard."""

    def test_requires_login(self):
        """Test anonymous users are sent to login."""
        response = self.client.get(reverse('core:index'))
        self.assertEqual(response.status_code, 302)

    def test_teacher_totals_scoped(self):
        """Test teacher totals cover their classes only."""
        self.add_grade(self.s3, marks=80)
        self.add_grade(self.s5, marks=40)
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('core:index'))
        self.assertEqual(response.status_code, 200)
        stats = response.context['stats']
        self.assertEqual(stats['students'], 2)
        self.assertEqual(stats['grades'], 1)
        self.assertEqual(stats['average_marks'], Decimal('80.0'))

    def test_announcements_ordered(self):
        """Test active announcements come by priority."""
        Announcement.objects.create(title='Low', content='x', priority='low')
        Announcement.objects.create(title='High', content='x', priority='high')
        Announcement.objects.create(title='Hidden', content='x', priority='high', is_active=False)
        self.client.force_login(self.admin)
        response = self.client.get(reverse('core:index'))
        self.assertEqual([a.title for a in response.context['announcements']], ['High', 'Low'])


class NavigationTest(SchoolDataMixin, TestCase):
    """Tests for the role-based sidebar and template filters."""

    def nav_labels(self, user):
        request = RequestFactory().get('/')
        request.user = user
        return [item['label'] for item in get_navigation_items({'request': request})]

    def test_teacher_navigation(self):
        """Test teachers do not see admin sections."""
        labels = self.nav_labels(self.teacher)
        self.assertIn('Grade Entry', labels)
        self.assertNotIn('Teachers', labels)

    def test_admin_navigation(self):
        """Test admins see management sections."""
        labels = self.nav_labels(self.admin)
        self.assertIn('Teachers', labels)
        self.assertIn('Announcements', labels)

    def test_marks_filter(self):
        """Test marks drop trailing zeros."""
        self.assertEqual(marks(Decimal('15.00')), '15')
        self.assertEqual(marks(Decimal('15.50')), '15.5')
        self.assertEqual(marks(None), '-')
