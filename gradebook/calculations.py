"""
Grade aggregation and result classification.

Everything here is pure: functions take already-loaded students, grades and
subjects (model instances or any objects with the same attributes) and return
plain dicts. Access filtering happens before these functions are called.

Reporting modes:
    half-yearly  Term 1 assignments + half-yearly exam
    full-yearly  all assignments + half-yearly and final exams
"""
from collections import defaultdict
from decimal import Decimal

from . import config


HALF_YEARLY = 'half-yearly'
FULL_YEARLY = 'full-yearly'
REPORT_MODES = (HALF_YEARLY, FULL_YEARLY)

ASSIGNMENT = 'assignment'
HALF_YEARLY_EXAM = 'half-yearly'
FINAL_EXAM = 'final'

PASS = 'pass'
FAIL = 'fail'

# (inclusive lower bound, letter) in descending order
GRADE_BANDS = (
    (Decimal('90'), 'A+'),
    (Decimal('80'), 'A'),
    (Decimal('70'), 'B'),
    (Decimal('60'), 'C'),
    (Decimal('50'), 'D'),
    (Decimal('40'), 'E'),
)
FAILING_GRADE = 'F'
GRADE_LETTERS = tuple(letter for _, letter in GRADE_BANDS) + (FAILING_GRADE,)

ZERO = Decimal('0')
HUNDRED = Decimal('100')


def to_decimal(value):
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def assignment_cap_per_term():
    """Marks available from one term's assignments (2 x 20 by default)."""
    return config.ASSIGNMENTS_PER_TERM * config.ASSIGNMENT_MAX_MARKS


# ============ Result Classifier ============

def calculate_percentage(obtained, total):
    """obtained / total x 100, or 0 when total is 0."""
    total = to_decimal(total)
    if total == 0:
        return ZERO
    return to_decimal(obtained) / total * HUNDRED


def classify_percentage(percentage):
    """Letter grade for a percentage using the fixed 7-band table."""
    percentage = to_decimal(percentage)
    for lower_bound, letter in GRADE_BANDS:
        if percentage >= lower_bound:
            return letter
    return FAILING_GRADE


def report_pass_status(percentage):
    """
    Verdict printed on a student's report: pass iff percentage >= 40.

    Independent of each subject's passing_marks; see subject_pass_rate for
    the per-record rule used by analytics.
    """
    if to_decimal(percentage) >= to_decimal(config.REPORT_PASS_PERCENTAGE):
        return PASS
    return FAIL


def is_grade_passing(grade, subject):
    """Raw marks of one grade record against the subject's passing_marks."""
    return to_decimal(grade.marks_obtained) >= to_decimal(subject.passing_marks)


def subject_pass_rate(grades, subjects_by_id):
    """
    Percentage of grade records whose raw marks reach their subject's
    passing_marks. Records whose subject is unknown are ignored. 0 when
    there are no records.
    """
    counted = 0
    passed = 0
    for grade in grades:
        subject = subjects_by_id.get(grade.subject_id)
        if subject is None:
            continue
        counted += 1
        if is_grade_passing(grade, subject):
            passed += 1
    return calculate_percentage(passed, counted)


def classify_result(obtained, total):
    percentage = calculate_percentage(obtained, total)
    return {
        'percentage': percentage,
        'grade': classify_percentage(percentage),
        'status': report_pass_status(percentage),
    }


# ============ Grade Aggregator ============

def subject_total_possible(subject, mode):
    """Marks available in one subject under a reporting mode."""
    max_marks = to_decimal(subject.max_marks)
    cap = to_decimal(assignment_cap_per_term())
    if mode == HALF_YEARLY:
        return cap + max_marks
    return cap * 2 + max_marks * 2


def _subject_class_ids(subject):
    class_ids = getattr(subject, 'class_ids', None)
    if class_ids is None:
        class_ids = [c.pk for c in subject.classes.all()]
    return {str(c) for c in class_ids}


def _student_class_id(student):
    class_id = getattr(student, 'current_class_id', None)
    if class_id is None:
        class_id = getattr(student, 'class_id', None)
    return str(class_id) if class_id is not None else None


def applicable_subjects(student, subjects):
    """Subjects taught in the student's class, in input order."""
    class_id = _student_class_id(student)
    return [s for s in subjects if class_id in _subject_class_ids(s)]


def _exam_marks(grades):
    """Marks of an exam slot; None when no record exists. Only one record counts."""
    if not grades:
        return None
    return to_decimal(grades[0].marks_obtained)


def summarize_subject(subject, grades, mode):
    """
    Per-subject row from the grades of one student/subject/year.

    Missing exams add 0 to obtained but still count toward total.
    """
    term1 = [g for g in grades if g.exam_type == ASSIGNMENT and g.term == 1]
    term2 = [g for g in grades if g.exam_type == ASSIGNMENT and g.term == 2]
    half = [g for g in grades if g.exam_type == HALF_YEARLY_EXAM]
    final = [g for g in grades if g.exam_type == FINAL_EXAM]

    term1_total = sum((to_decimal(g.marks_obtained) for g in term1), ZERO)
    term2_total = sum((to_decimal(g.marks_obtained) for g in term2), ZERO)
    half_yearly = _exam_marks(half)
    final_marks = _exam_marks(final)

    if mode == HALF_YEARLY:
        obtained = term1_total + (half_yearly or ZERO)
    else:
        obtained = term1_total + term2_total + (half_yearly or ZERO) + (final_marks or ZERO)

    total = subject_total_possible(subject, mode)
    max_marks = to_decimal(subject.max_marks)

    # Letter shown per subject on the report uses exam marks only
    if mode == HALF_YEARLY:
        exam_percentage = calculate_percentage(half_yearly or ZERO, max_marks)
    else:
        exam_percentage = calculate_percentage(
            (half_yearly or ZERO) + (final_marks or ZERO), max_marks * 2
        )

    return {
        'subject': subject,
        'term1_assignments': term1_total,
        'term2_assignments': term2_total,
        'term1_count': len(term1),
        'term2_count': len(term2),
        'assignment_total': term1_total + term2_total,
        'half_yearly': half_yearly,
        'final': final_marks,
        'max_marks': max_marks,
        'total': total,
        'obtained': obtained,
        'percentage': calculate_percentage(obtained, total),
        'exam_percentage': exam_percentage,
        'grade': classify_percentage(exam_percentage),
    }


def aggregate_subject_results(student, grades, subjects, academic_year, mode):
    """
    Per-subject rows for one student.

    Only subjects taught in the student's class that hold at least one grade
    for the academic year are included.
    """
    if mode not in REPORT_MODES:
        raise ValueError(f"Unknown reporting mode: {mode}")

    by_subject = defaultdict(list)
    for grade in grades:
        if grade.student_id == student.pk and grade.academic_year == academic_year:
            by_subject[grade.subject_id].append(grade)

    rows = []
    for subject in applicable_subjects(student, subjects):
        subject_grades = by_subject.get(subject.pk)
        if not subject_grades:
            continue
        rows.append(summarize_subject(subject, subject_grades, mode))
    return rows


def compute_student_result(student, grades, subjects, academic_year, mode):
    """Whole-result totals, percentage, grade and verdict for a student."""
    rows = aggregate_subject_results(student, grades, subjects, academic_year, mode)
    total = sum((row['total'] for row in rows), ZERO)
    obtained = sum((row['obtained'] for row in rows), ZERO)

    result = {
        'student': student,
        'academic_year': academic_year,
        'mode': mode,
        'subjects': rows,
        'total': total,
        'obtained': obtained,
    }
    result.update(classify_result(obtained, total))
    return result
