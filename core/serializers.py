"""
snake_case <-> camelCase mapping at the JSON boundary.

Models use snake_case field names; the JSON API speaks camelCase. Every read
goes through ``serialize_instance`` and every write through ``parse_payload``.
"""
import re
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')

# Model field name -> API key, where the plain camelCase form is not used
FIELD_ALIASES = {
    'students': {'current_class': 'class'},
    'subjects': {'classes': 'class'},
    'classes': {},
    'grades': {},
    'users': {},
}

# Fields exposed per collection, in model (snake_case) form
ENTITY_FIELDS = {
    'users': ['id', 'username', 'name', 'email', 'role', 'access_id', 'assigned_classes'],
    'classes': ['id', 'name', 'sections', 'assigned_teacher'],
    'subjects': ['id', 'name', 'code', 'max_marks', 'passing_marks', 'classes'],
    'students': [
        'id', 'name', 'roll_number', 'current_class', 'section', 'father_name',
        'mother_name', 'date_of_birth', 'address', 'phone', 'email', 'admission_date',
    ],
    'grades': [
        'id', 'student', 'subject', 'exam_type', 'term', 'marks_obtained',
        'exam_date', 'academic_year', 'remarks',
    ],
}

# Foreign keys exposed as "<name>Id"
FOREIGN_KEY_IDS = {
    'grades': {'student', 'subject'},
    'classes': {'assigned_teacher'},
}

MANY_TO_MANY = {
    'users': {'assigned_classes'},
    'subjects': {'classes'},
}


def to_camel_case(name):
    head, *rest = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in rest)


def to_snake_case(name):
    return _CAMEL_BOUNDARY.sub('_', name).lower()


def camelize(data):
    """Recursively convert dict keys to camelCase."""
    if isinstance(data, dict):
        return {to_camel_case(k): camelize(v) for k, v in data.items()}
    if isinstance(data, list):
        return [camelize(item) for item in data]
    return data


def snakeize(data):
    """Recursively convert dict keys to snake_case."""
    if isinstance(data, dict):
        return {to_snake_case(k): snakeize(v) for k, v in data.items()}
    if isinstance(data, list):
        return [snakeize(item) for item in data]
    return data


def api_key(entity, field):
    """API (camelCase) key for a model field of a collection."""
    alias = FIELD_ALIASES.get(entity, {}).get(field)
    if alias:
        return alias
    if field in FOREIGN_KEY_IDS.get(entity, set()):
        return to_camel_case(f'{field}_id')
    return to_camel_case(field)


def model_field(entity, key):
    """Model field name for an API key, or None when the key is unknown."""
    for field in ENTITY_FIELDS[entity]:
        if api_key(entity, field) == key:
            return field
    snake = to_snake_case(key)
    if snake in ENTITY_FIELDS[entity]:
        return snake
    return None


def _plain(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def serialize_instance(entity, obj):
    """camelCase dict for a model instance."""
    data = {}
    for field in ENTITY_FIELDS[entity]:
        if field in MANY_TO_MANY.get(entity, set()):
            value = [str(related.pk) for related in getattr(obj, field).all()]
        elif field in FOREIGN_KEY_IDS.get(entity, set()) or field == 'current_class':
            fk_value = getattr(obj, f'{field}_id')
            value = str(fk_value) if fk_value is not None else None
        else:
            value = _plain(getattr(obj, field))
        data[api_key(entity, field)] = value
    if 'id' in data and data['id'] is not None:
        data['id'] = str(data['id'])
    return data


def parse_payload(entity, payload):
    """
    Split a camelCase payload into (model fields, many-to-many fields).

    Unknown keys and the read-only ``id`` are dropped. Foreign keys are
    returned under their ``<name>_id`` attribute.
    """
    fields = {}
    m2m = {}
    for key, value in payload.items():
        field = model_field(entity, key)
        if field is None or field == 'id':
            continue
        if field in MANY_TO_MANY.get(entity, set()):
            m2m[field] = list(value or [])
        elif field in FOREIGN_KEY_IDS.get(entity, set()) or field == 'current_class':
            fields[f'{field}_id'] = value or None
        else:
            fields[field] = value
    return fields, m2m
