"""
Analytics roll-up over the population a user may see.

Students and grades are narrowed through core.access before any number is
computed, so a teacher's aggregates never include other classes.
"""
import logging
from collections import Counter, defaultdict

from academics.models import Subject
from core.access import accessible_classes, accessible_grades, accessible_students
from . import calculations
from .calculations import (
    GRADE_LETTERS, ZERO, calculate_percentage, compute_student_result,
    subject_pass_rate, to_decimal,
)
from .models import Grade

logger = logging.getLogger(__name__)


def _round(value, places=1):
    return round(to_decimal(value), places)


def _average(values):
    values = list(values)
    if not values:
        return ZERO
    return sum((to_decimal(v) for v in values), ZERO) / len(values)


def load_population(user, academic_year, class_id=None):
    """Accessible classes, students, subjects and grades for one academic year."""
    classes = list(accessible_classes(user))
    students = accessible_students(user).select_related('current_class')
    grades = accessible_grades(user).filter(academic_year=academic_year)
    if class_id:
        students = students.filter(current_class_id=class_id)
        grades = grades.filter(student__current_class_id=class_id)
        classes = [c for c in classes if c.pk == class_id]
    subjects = list(Subject.objects.prefetch_related('classes'))
    return classes, list(students), subjects, list(grades)


def build_student_results(students, grades, subjects, academic_year, mode):
    grades_by_student = defaultdict(list)
    for grade in grades:
        grades_by_student[grade.student_id].append(grade)
    return [
        compute_student_result(
            student, grades_by_student.get(student.pk, []), subjects, academic_year, mode
        )
        for student in students
    ]


def class_performance(classes, students, grades, results, subjects_by_id):
    """Per class: student count, mean student percentage, raw average, pass rate."""
    class_of_student = {s.pk: s.current_class_id for s in students}
    rows = []
    for school_class in classes:
        class_students = [s for s in students if s.current_class_id == school_class.pk]
        class_grades = [g for g in grades if class_of_student.get(g.student_id) == school_class.pk]
        class_results = [
            r for r in results
            if r['student'].current_class_id == school_class.pk and r['subjects']
        ]
        rows.append({
            'class': school_class,
            'class_id': school_class.pk,
            'name': school_class.name,
            'students': len(class_students),
            'avg_percentage': _round(_average(r['percentage'] for r in class_results)),
            'avg_score': _round(_average(g.marks_obtained for g in class_grades)),
            'pass_rate': _round(subject_pass_rate(class_grades, subjects_by_id)),
            'total_grades': len(class_grades),
        })
    return rows


def subject_performance(subjects, grades, results, subjects_by_id):
    """Per subject with at least one grade: mean student percentage, raw average, pass rate."""
    percentages = defaultdict(list)
    for result in results:
        for row in result['subjects']:
            percentages[row['subject'].pk].append(row['percentage'])

    rows = []
    for subject in subjects:
        subject_grades = [g for g in grades if g.subject_id == subject.pk]
        if not subject_grades:
            continue
        rows.append({
            'subject': subject,
            'name': subject.name,
            'avg_percentage': _round(_average(percentages.get(subject.pk, []))),
            'avg_score': _round(_average(g.marks_obtained for g in subject_grades)),
            'pass_rate': _round(subject_pass_rate(subject_grades, subjects_by_id)),
            'total_grades': len(subject_grades),
            'students': len({g.student_id for g in subject_grades}),
            'max_marks': subject.max_marks,
        })
    return rows


def grade_distribution(results):
    """Count of students per letter grade. Students without grades are skipped."""
    graded = [r for r in results if r['subjects']]
    counts = Counter(r['grade'] for r in graded)
    total = len(graded)
    return [
        {
            'grade': letter,
            'count': counts.get(letter, 0),
            'percentage': int(_round(calculate_percentage(counts.get(letter, 0), total), 0)),
        }
        for letter in GRADE_LETTERS
    ]


def exam_type_performance(grades):
    rows = []
    for exam_type, label in Grade.ExamType.choices:
        type_grades = [g for g in grades if g.exam_type == exam_type]
        if not type_grades:
            continue
        rows.append({
            'exam_type': exam_type,
            'label': label,
            'avg_score': _round(_average(g.marks_obtained for g in type_grades)),
            'count': len(type_grades),
        })
    return rows


def build_analytics(user, academic_year, class_id=None, mode=calculations.FULL_YEARLY):
    """
    Full analytics payload for a user.

    Returns a dict with headline metrics, class and subject performance,
    the grade distribution and exam-type averages.
    """
    classes, students, subjects, grades = load_population(user, academic_year, class_id)
    subjects_by_id = {s.pk: s for s in subjects}
    results = build_student_results(students, grades, subjects, academic_year, mode)

    logger.debug(
        f"Analytics for {user}: {len(students)} students, {len(grades)} grades, {academic_year}"
    )

    return {
        'academic_year': academic_year,
        'mode': mode,
        'class_id': class_id,
        'total_students': len(students),
        'total_subjects': len(subjects),
        'total_grades': len(grades),
        'average_marks': _round(_average(g.marks_obtained for g in grades)),
        'overall_pass_rate': _round(subject_pass_rate(grades, subjects_by_id)),
        'class_performance': class_performance(classes, students, grades, results, subjects_by_id),
        'subject_performance': subject_performance(subjects, grades, results, subjects_by_id),
        'grade_distribution': grade_distribution(results),
        'exam_type_performance': exam_type_performance(grades),
        'student_results': results,
    }


def top_performers(results, limit=5):
    graded = [r for r in results if r['subjects']]
    return sorted(graded, key=lambda r: r['percentage'], reverse=True)[:limit]
