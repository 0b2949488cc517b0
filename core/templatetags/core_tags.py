from decimal import Decimal

from django import template
from django.urls import reverse, NoReverseMatch

register = template.Library()


# Navigation config with role-based access
# roles: 'all', 'admin', 'teacher'
NAVIGATION_CONFIG = [
    {
        'label': 'Dashboard',
        'icon': 'fa-solid fa-gauge',
        'url_name': 'core:index',
        'roles': ['all'],
    },
    {
        'label': 'Students',
        'icon': 'fa-solid fa-user-graduate',
        'url_name': 'students:index',
        'roles': ['all'],
    },
    {
        'label': 'Grade Entry',
        'icon': 'fa-solid fa-pen-to-square',
        'url_name': 'gradebook:grade_entry',
        'roles': ['all'],
    },
    {
        'label': 'Reports',
        'icon': 'fa-solid fa-file-pdf',
        'url_name': 'gradebook:reports',
        'roles': ['all'],
    },
    {
        'label': 'Analytics',
        'icon': 'fa-solid fa-chart-line',
        'url_name': 'gradebook:analytics',
        'roles': ['all'],
    },
    # Admin navigation
    {
        'label': 'Teachers',
        'icon': 'fa-solid fa-chalkboard-user',
        'url_name': 'teachers:index',
        'roles': ['admin'],
    },
    {
        'label': 'Academics',
        'icon': 'fa-solid fa-graduation-cap',
        'url_name': 'academics:index',
        'roles': ['admin'],
        'children': [
            {
                'label': 'Classes',
                'icon': 'fa-solid fa-chalkboard',
                'url_name': 'academics:class_index',
            },
            {
                'label': 'Subjects',
                'icon': 'fa-solid fa-book',
                'url_name': 'academics:subject_index',
            },
        ]
    },
    {
        'label': 'Announcements',
        'icon': 'fa-solid fa-bullhorn',
        'url_name': 'communications:index',
        'roles': ['admin'],
    },
]


def get_user_roles(user):
    """Get list of roles for the current user."""
    if not user or not user.is_authenticated:
        return []
    if user.is_superuser or getattr(user, 'role', None) == 'admin':
        return ['admin']
    if getattr(user, 'role', None) == 'teacher':
        return ['teacher']
    return []


def user_has_access(user_roles, item_roles):
    """Check if user has access to a navigation item."""
    if 'all' in item_roles:
        return bool(user_roles)
    return any(role in item_roles for role in user_roles)


def resolve_url(url_name):
    """Safely resolve URL name to URL path."""
    try:
        return reverse(url_name)
    except NoReverseMatch:
        return '#'


def is_url_active(request, url):
    """Check if the current request path matches the nav item."""
    if url == '#':
        return False
    current_path = request.path
    # Exact match when either URL or current path is root
    if url == '/' or current_path == '/':
        return current_path == url
    return current_path == url or current_path.startswith(url.rstrip('/') + '/')


def process_nav_item(item, request):
    """Process a navigation item and its children."""
    url = resolve_url(item['url_name'])

    processed = {
        'label': item['label'],
        'icon': item['icon'],
        'url': url,
        'is_active': is_url_active(request, url),
    }

    if 'children' in item:
        children = []
        for child in item['children']:
            child_url = resolve_url(child['url_name'])
            child_is_active = is_url_active(request, child_url)
            children.append({
                'label': child['label'],
                'icon': child['icon'],
                'url': child_url,
                'is_active': child_is_active,
            })
            if child_is_active:
                processed['is_active'] = True
        processed['children'] = children

    return processed


@register.simple_tag(takes_context=True)
def get_navigation_items(context):
    """
    Returns the navigation items for the sidebar based on user role.
    Marks the current page as active based on the request path.
    """
    request = context.get('request')
    if not request:
        return []

    user_roles = get_user_roles(getattr(request, 'user', None))

    return [
        process_nav_item(item, request)
        for item in NAVIGATION_CONFIG
        if user_has_access(user_roles, item.get('roles', ['all']))
    ]


@register.inclusion_tag('core/partials/stat_card.html')
def stat_card(title, value, icon, color='primary'):
    """
    Render a stat card component.
    Usage: {% stat_card "Students" "1,200" "fa-solid fa-users" "primary" %}
    """
    return {
        'title': title,
        'value': value,
        'icon': icon,
        'color': color,
    }


@register.simple_tag(takes_context=True)
def user_is_role(context, role):
    """
    Check if the current user has a specific role.
    Usage: {% user_is_role 'teacher' as is_teacher %}
    """
    request = context.get('request')
    if not request:
        return False
    return role in get_user_roles(getattr(request, 'user', None))


@register.filter
def marks(value):
    """Show 15.00 as 15 and 15.50 as 15.5; '-' for missing marks."""
    if value is None or value == '':
        return '-'
    value = Decimal(str(value))
    if value == value.to_integral_value():
        return str(value.quantize(Decimal('1')))
    return str(value.normalize())

