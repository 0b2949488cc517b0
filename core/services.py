"""
Data operations behind the JSON API.

Each collection supports create, field-level partial update and delete, plus
a ``refresh`` that reloads every collection. Payloads arrive in camelCase and
are mapped through core.serializers.

Failure handling:
- validation runs (``full_clean``) before anything is written and raises
  ``ValidationError``
- database failures are logged and re-raised as ``DataServiceError``; the
  surrounding transaction is rolled back so nothing is half-written
- visibility follows core.access; out-of-scope objects raise ``PermissionDenied``
"""
import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import DatabaseError, transaction

from academics.models import SchoolClass, Subject
from academics.utils import set_class_teacher, sync_teacher_classes, unassign_teacher
from gradebook.models import Grade
from gradebook.validators import prepare_assignment
from students.models import Student
from . import access
from .serializers import parse_payload, serialize_instance

logger = logging.getLogger(__name__)

User = get_user_model()

ENTITY_MODELS = {
    'users': User,
    'classes': SchoolClass,
    'subjects': Subject,
    'students': Student,
    'grades': Grade,
}

# Collections only admins may change
ADMIN_ONLY = {'users', 'classes', 'subjects'}


class DataServiceError(Exception):
    """A data operation failed after validation passed."""

    def __init__(self, operation, entity, original):
        self.operation = operation
        self.entity = entity
        self.original = original
        super().__init__(f"Failed to {operation} {entity}: {original}")


class DataService:
    """Create, update, delete and refresh on behalf of one user."""

    def __init__(self, user):
        self.user = user

    # ---- helpers ----

    def _model(self, entity):
        try:
            return ENTITY_MODELS[entity]
        except KeyError:
            raise ValueError(f"Unknown collection: {entity}")

    def _check_write(self, entity):
        if entity in ADMIN_ONLY and not access.is_school_admin(self.user):
            raise PermissionDenied(f"Only admins can change {entity}.")
        if not access.is_teacher_or_admin(self.user):
            raise PermissionDenied("Not allowed.")

    def _check_object(self, entity, obj):
        """Teachers may only touch students and grades of their own classes."""
        if entity == 'students':
            class_id = obj.current_class_id
        elif entity == 'grades':
            class_id = obj.student.current_class_id if obj.student_id else None
        else:
            return
        if not access.can_access_class(self.user, class_id):
            raise PermissionDenied("You don't have access to this class.")

    def queryset(self, entity):
        """Objects of a collection visible to the user."""
        if entity == 'students':
            return access.accessible_students(self.user)
        if entity == 'grades':
            return access.accessible_grades(self.user)
        if entity == 'classes':
            return access.accessible_classes(self.user)
        if entity == 'users':
            if access.is_school_admin(self.user):
                return User.objects.all()
            return User.objects.filter(pk=self.user.pk)
        return self._model(entity).objects.all()

    def _lookup(self, entity, pk):
        """Visible object by primary key; malformed keys count as not found."""
        try:
            obj = self.queryset(entity).filter(pk=pk).first()
        except (ValueError, ValidationError):
            obj = None
        if obj is None:
            raise self._model(entity).DoesNotExist(f"{entity} {pk} not found")
        return obj

    def _apply(self, obj, entity, fields, m2m):
        password = fields.pop('password', None)
        for name, value in fields.items():
            setattr(obj, name, value)
        if entity == 'users' and password:
            obj.set_password(password)

        obj.full_clean()
        self._check_object(entity, obj)

        if entity == 'grades' and obj.is_assignment and obj._state.adding:
            prepare_assignment(obj)

        obj.save()
        for name, values in m2m.items():
            if entity == 'users' and name == 'assigned_classes':
                sync_teacher_classes(obj, SchoolClass.objects.filter(pk__in=values))
            else:
                getattr(obj, name).set(values)
        if entity == 'classes' and 'assigned_teacher_id' in fields:
            set_class_teacher(obj, obj.assigned_teacher)
        return obj

    # ---- operations ----

    def create(self, entity, payload):
        """Create a record from a camelCase payload and return it serialized."""
        model = self._model(entity)
        self._check_write(entity)
        fields, m2m = parse_payload(entity, payload)
        if entity == 'users' and 'password' in payload:
            fields['password'] = payload['password']
        if entity == 'classes':
            # Class ids are chosen by the school, not generated
            fields['id'] = str(payload.get('id') or '').strip()

        obj = model()
        if entity == 'users':
            obj.set_unusable_password()
        try:
            with transaction.atomic():
                obj = self._apply(obj, entity, fields, m2m)
        except DatabaseError as e:
            logger.error(f"Error creating {entity}: {e}")
            raise DataServiceError('create', entity, e) from e

        logger.info(f"{self.user} created {entity} {obj.pk}")
        return serialize_instance(entity, obj)

    def update(self, entity, pk, payload):
        """
        Partial update: only keys present in the payload are written.
        Returns the updated record serialized.
        """
        self._check_write(entity)
        obj = self._lookup(entity, pk)
        self._check_object(entity, obj)

        fields, m2m = parse_payload(entity, payload)
        if entity == 'users' and payload.get('password'):
            fields['password'] = payload['password']
        try:
            with transaction.atomic():
                obj = self._apply(obj, entity, fields, m2m)
        except DatabaseError as e:
            logger.error(f"Error updating {entity} {pk}: {e}")
            raise DataServiceError('update', entity, e) from e

        logger.info(f"{self.user} updated {entity} {pk}: {sorted(list(fields) + list(m2m))}")
        return serialize_instance(entity, obj)

    def delete(self, entity, pk):
        """
        Delete a record. Dependent grades go with students and subjects
        (database cascade); deleted users are unassigned from their classes.
        """
        self._check_write(entity)
        obj = self._lookup(entity, pk)
        self._check_object(entity, obj)

        try:
            with transaction.atomic():
                if entity == 'users':
                    unassign_teacher(obj)
                obj.delete()
        except DatabaseError as e:
            logger.error(f"Error deleting {entity} {pk}: {e}")
            raise DataServiceError('delete', entity, e) from e

        logger.info(f"{self.user} deleted {entity} {pk}")

    def get(self, entity, pk):
        obj = self._lookup(entity, pk)
        return serialize_instance(entity, obj)

    def refresh_collection(self, entity):
        self._model(entity)
        try:
            return [serialize_instance(entity, obj) for obj in self._refresh_queryset(entity)]
        except DatabaseError as e:
            logger.error(f"Error loading {entity}: {e}")
            raise DataServiceError('load', entity, e) from e

    def refresh(self):
        """Reload every collection from scratch."""
        try:
            return {
                entity: [serialize_instance(entity, obj) for obj in self._refresh_queryset(entity)]
                for entity in ENTITY_MODELS
            }
        except DatabaseError as e:
            logger.error(f"Error refreshing collections: {e}")
            raise DataServiceError('refresh', 'collections', e) from e

    def _refresh_queryset(self, entity):
        qs = self.queryset(entity)
        if entity == 'users':
            return qs.prefetch_related('assigned_classes')
        if entity == 'subjects':
            return qs.prefetch_related('classes')
        return qs
