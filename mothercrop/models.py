from datetime import datetime, timezone
import re
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin

db = SQLAlchemy()

POST_STATUS_DRAFT = 'draft'
POST_STATUS_PUBLISHED = 'published'
POST_STATUS_TRASH = 'trash'
POST_STATUSES = (
    POST_STATUS_DRAFT,
    POST_STATUS_PUBLISHED,
    POST_STATUS_TRASH,
)

ROLE_ADMIN = 'admin'
ROLE_MANAGER = 'manager'
ROLE_EDITOR = 'editor'
USER_ROLE_CHOICES = (
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_EDITOR,
)
USER_ROLE_LABELS = {
    ROLE_ADMIN: 'Admin',
    ROLE_MANAGER: 'Manager',
    ROLE_EDITOR: 'Editor',
}
ROLE_DEFAULT = ROLE_EDITOR
ROLE_PERMISSIONS = {
    ROLE_ADMIN: {
        'dashboard:view',
        'content:manage',
        'blog:manage',
        'inbox:view',
        'data:manage',
        'users:manage',
    },
    ROLE_MANAGER: {
        'dashboard:view',
        'content:manage',
        'blog:manage',
        'inbox:view',
        'data:manage',
    },
    ROLE_EDITOR: {
        'blog:manage',
    },
}

SOIL_MODE_SOIL = 'soil'
SOIL_MODE_PLANT = 'plant'
SOIL_MODES = (SOIL_MODE_SOIL, SOIL_MODE_PLANT)
SOIL_LANGUAGES = ('en', 'hi')

NOTIFY_SUCCESS = 'success'
NOTIFY_ERROR = 'error'
NOTIFY_INFO = 'info'
NOTIFY_LEVELS = (NOTIFY_SUCCESS, NOTIFY_ERROR, NOTIFY_INFO)

CHAT_ROLE_USER = 'user'
CHAT_ROLE_MODEL = 'model'

MAX_CHAT_SESSIONS = 50
MAX_CHAT_MESSAGES = 50
MAX_SOIL_RECORDS = 50
TRASH_RETENTION_DAYS = 30

PAGE_HOME = 'HOME'
PAGE_ABOUT = 'ABOUT'
PAGE_SERVICES = 'SERVICES'
PAGE_BLOG = 'BLOG'
PAGE_CONTACT = 'CONTACT'
PAGE_KNOWLEDGE = 'KNOWLEDGE'
PAGE_SOIL_ANALYSIS = 'SOIL_ANALYSIS'
PAGE_ADMIN = 'ADMIN'
PAGE_IDS = (
    PAGE_HOME,
    PAGE_ABOUT,
    PAGE_SERVICES,
    PAGE_BLOG,
    PAGE_CONTACT,
    PAGE_KNOWLEDGE,
    PAGE_SOIL_ANALYSIS,
    PAGE_ADMIN,
)
PAGE_ID_RE = re.compile(r'^[A-Z0-9_]{1,40}$')

# Top-level sections that hold lists of records.
ARRAY_SECTIONS = (
    'users',
    'chatHistory',
    'soilLabHistory',
    'subscribers',
    'contactMessages',
    'testimonials',
    'knowledgeResources',
)
SECTION_TYPES = {
    'home': dict,
    'about': dict,
    'servicesPage': dict,
    'contact': dict,
    'trafficStats': dict,
    'blog': list,
    'users': list,
    'chatHistory': list,
    'soilLabHistory': list,
    'subscribers': list,
    'contactMessages': list,
    'testimonials': list,
    'knowledgeResources': list,
}
# Keys every element of a list section must carry.
SECTION_ITEM_KEYS = {
    'blog': ('id', 'title', 'status'),
    'users': ('id', 'username', 'password', 'role'),
    'chatHistory': ('id', 'messages'),
    'soilLabHistory': ('id', 'mode'),
    'subscribers': ('id', 'email'),
    'contactMessages': ('id', 'email', 'message'),
    'testimonials': ('id', 'name', 'text'),
    'knowledgeResources': ('id', 'title', 'type'),
}


def utc_now_naive():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_post_status(value, default=POST_STATUS_DRAFT):
    candidate = (value or '').strip().lower()
    if candidate in POST_STATUSES:
        return candidate
    return default


def normalize_user_role(value, default=ROLE_DEFAULT):
    candidate = (value or '').strip().lower()
    if candidate in USER_ROLE_CHOICES:
        return candidate
    return default


def normalize_soil_mode(value, default=SOIL_MODE_SOIL):
    candidate = (value or '').strip().lower()
    if candidate in SOIL_MODES:
        return candidate
    return default


def normalize_notify_level(value, default=NOTIFY_INFO):
    candidate = (value or '').strip().lower()
    if candidate in NOTIFY_LEVELS:
        return candidate
    return default


def normalize_page_id(value):
    candidate = (value or '').strip().upper().replace('-', '_')
    if PAGE_ID_RE.match(candidate):
        return candidate
    return ''


def section_shape_errors(section, payload):
    """Return a list of problems with ``payload`` as a value for ``section``."""
    expected = SECTION_TYPES.get(section)
    if expected is None:
        return [f'Unknown section "{section}".']
    if not isinstance(payload, expected):
        return [f'Section "{section}" must be a {"list" if expected is list else "object"}.']

    errors = []
    if section == 'trafficStats':
        for page_id, count in payload.items():
            if not isinstance(count, int) or isinstance(count, bool) or count < 0:
                errors.append(f'Traffic counter "{page_id}" must be a non-negative integer.')
    elif section == 'servicesPage':
        items = payload.get('items')
        if not isinstance(items, list):
            errors.append('Section "servicesPage" needs an "items" list.')
        else:
            for index, item in enumerate(items):
                if not isinstance(item, dict) or 'id' not in item or 'title' not in item:
                    errors.append(f'Service #{index} needs "id" and "title".')

    required = SECTION_ITEM_KEYS.get(section, ())
    if expected is list:
        for index, item in enumerate(payload):
            if not isinstance(item, dict):
                errors.append(f'{section}[{index}] must be an object.')
                continue
            missing = [key for key in required if key not in item]
            if missing:
                errors.append(f'{section}[{index}] is missing {", ".join(missing)}.')
        if section == 'blog':
            for index, item in enumerate(payload):
                if isinstance(item, dict) and item.get('status') not in POST_STATUSES:
                    errors.append(f'blog[{index}] has an unknown status.')
        elif section == 'users':
            for index, item in enumerate(payload):
                if isinstance(item, dict) and item.get('role') not in USER_ROLE_CHOICES:
                    errors.append(f'users[{index}] has an unknown role.')
    return errors


class StorageRecord(db.Model):
    __tablename__ = 'storage_record'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(120), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=False)
    revision = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=utc_now_naive, onupdate=utc_now_naive)


class SiteUser(UserMixin):
    """Flask-Login view over one entry of the document's ``users`` list."""

    def __init__(self, record):
        self.record = dict(record or {})

    def get_id(self):
        return str(self.record.get('id'))

    @property
    def user_id(self):
        return self.record.get('id')

    @property
    def username(self):
        return self.record.get('username') or ''

    @property
    def role_key(self):
        return normalize_user_role(self.record.get('role'), default=ROLE_DEFAULT)

    @property
    def role_label(self):
        return USER_ROLE_LABELS.get(self.role_key, USER_ROLE_LABELS[ROLE_DEFAULT])

    def has_permission(self, permission):
        return permission in ROLE_PERMISSIONS.get(self.role_key, ROLE_PERMISSIONS[ROLE_DEFAULT])

    def to_public_dict(self):
        return {
            'id': self.user_id,
            'username': self.username,
            'role': self.role_key,
            'permissions': sorted(ROLE_PERMISSIONS.get(self.role_key, ())),
        }
