"""
Management command to seed the default classes and subjects.

Usage:
    python manage.py seed_academics

    # Seed only one part
    python manage.py seed_academics --classes
    python manage.py seed_academics --subjects

    # Overwrite names, sections and marks of existing rows
    python manage.py seed_academics --force
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from academics.models import SchoolClass, Subject


CLASSES = [
    ('PNC', 'Pre-Nursery Class', ['A']),
    ('LKG', 'Lower Kindergarten', ['A']),
    ('UKG', 'Upper Kindergarten', ['A']),
    ('1', 'Class 1', ['A', 'B']),
    ('2', 'Class 2', ['A', 'B']),
    ('3', 'Class 3', ['A', 'B']),
    ('4', 'Class 4', ['A', 'B']),
    ('5', 'Class 5', ['A', 'B']),
]

PRIMARY = ['1', '2', '3', '4', '5']

SUBJECTS = [
    {'name': 'Mathematics', 'code': 'MATH', 'classes': PRIMARY},
    {'name': 'English', 'code': 'ENG', 'classes': ['PNC', 'LKG', 'UKG'] + PRIMARY},
    {'name': 'Science', 'code': 'SCI', 'classes': ['3', '4', '5']},
    {'name': 'Urdu', 'code': 'URD', 'classes': PRIMARY},
    {'name': 'Islamic Studies', 'code': 'ISL', 'classes': PRIMARY},
]


class Command(BaseCommand):
    help = 'Seed default classes and subjects'

    def add_arguments(self, parser):
        parser.add_argument(
            '--force',
            action='store_true',
            help='Overwrite existing data',
        )
        parser.add_argument(
            '--classes',
            action='store_true',
            help='Seed only classes',
        )
        parser.add_argument(
            '--subjects',
            action='store_true',
            help='Seed only subjects',
        )

    def handle(self, *args, **options):
        force = options['force']
        seed_all = not (options['classes'] or options['subjects'])

        with transaction.atomic():
            if seed_all or options['classes']:
                self.seed_classes(force)
            if seed_all or options['subjects']:
                self.seed_subjects(force)

        self.stdout.write(self.style.SUCCESS('Academic data seeded.'))

    def seed_classes(self, force):
        created = 0
        for class_id, name, sections in CLASSES:
            obj, was_created = SchoolClass.objects.get_or_create(
                id=class_id, defaults={'name': name, 'sections': sections}
            )
            if was_created:
                created += 1
            elif force:
                obj.name = name
                obj.sections = sections
                obj.save()
        self.stdout.write(f'  Classes: {created} created')

    def seed_subjects(self, force):
        created = 0
        for data in SUBJECTS:
            subject, was_created = Subject.objects.get_or_create(
                code=data['code'],
                defaults={'name': data['name'], 'max_marks': 100, 'passing_marks': 40},
            )
            if was_created:
                created += 1
            elif force:
                subject.name = data['name']
                subject.max_marks = 100
                subject.passing_marks = 40
                subject.save()
            if was_created or force:
                subject.classes.set(SchoolClass.objects.filter(pk__in=data['classes']))
        self.stdout.write(f'  Subjects: {created} created')
