"""
Management command to fill the term of assignment grades imported without one.

Older records carried the term only inside remarks ("Term 1 Assignment 2").
This reads that text and writes the explicit term field.

Usage: python manage.py backfill_grade_terms [--dry-run]
"""
import logging
import re

from django.core.management.base import BaseCommand
from django.db import transaction

from gradebook.models import Grade

logger = logging.getLogger(__name__)

TERM_PATTERN = re.compile(r'\bterm\s*([12])\b', re.IGNORECASE)


def term_from_remarks(remarks):
    """1 or 2 when the remarks name a term, otherwise None."""
    match = TERM_PATTERN.search(remarks or '')
    return int(match.group(1)) if match else None


class Command(BaseCommand):
    help = 'Set the term of assignment grades from their remarks'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be done without making changes',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        prefix = '[DRY RUN] ' if dry_run else ''

        pending = Grade.objects.filter(
            exam_type=Grade.ExamType.ASSIGNMENT,
            term__isnull=True,
        ).select_related('student', 'subject')

        updated = []
        skipped = 0
        for grade in pending:
            term = term_from_remarks(grade.remarks)
            if term is None:
                skipped += 1
                self.stdout.write(
                    self.style.WARNING(f'  No term in remarks for grade {grade.pk}: "{grade.remarks}"')
                )
                continue
            grade.term = term
            updated.append(grade)

        if updated and not dry_run:
            with transaction.atomic():
                Grade.objects.bulk_update(updated, ['term'])
            logger.info(f"Backfilled term on {len(updated)} assignment grades")

        self.stdout.write(self.style.SUCCESS(
            f'{prefix}Updated {len(updated)} grade(s), skipped {skipped}'
        ))
