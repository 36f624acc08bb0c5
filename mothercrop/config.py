import os
import tempfile
from urllib.parse import urlparse

basedir = os.path.abspath(os.path.dirname(__file__))


def _is_vercel_runtime():
    return bool(os.environ.get('VERCEL') or os.environ.get('VERCEL_ENV'))


def _is_managed_runtime():
    return bool(
        os.environ.get('RAILWAY_ENVIRONMENT')
        or os.environ.get('RENDER')
        or _is_vercel_runtime()
    )


def _is_production_runtime():
    flask_env = (os.environ.get('FLASK_ENV') or '').strip().lower()
    railway_env = (os.environ.get('RAILWAY_ENVIRONMENT') or '').strip().lower()
    vercel_env = (os.environ.get('VERCEL_ENV') or '').strip().lower()
    return flask_env == 'production' or railway_env == 'production' or vercel_env == 'production'


def _as_bool(value, default=False):
    if value is None:
        return default
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def _as_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value, default):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _database_url():
    raw = (os.environ.get('DATABASE_URL') or '').strip()
    if raw.startswith('postgres://'):
        raw = raw.replace('postgres://', 'postgresql://', 1)
    if raw:
        return raw
    if _is_vercel_runtime():
        return 'sqlite:///' + os.path.join(tempfile.gettempdir(), 'mothercrop.db')
    return 'sqlite:///' + os.path.join(basedir, 'mothercrop.db')


def _database_engine_options(database_url):
    if database_url.startswith('sqlite'):
        return {}
    options = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }
    parsed = urlparse(database_url)
    if parsed.scheme.startswith('postgresql'):
        options['connect_args'] = {
            'connect_timeout': max(1, _as_int(os.environ.get('DB_CONNECT_TIMEOUT_SECONDS'), 5)),
        }
    return options


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or ''
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_ENGINE_OPTIONS = _database_engine_options(SQLALCHEMY_DATABASE_URI)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Site document storage
    STORAGE_KEY = (os.environ.get('STORAGE_KEY') or 'mothercrop_data').strip()
    SYNC_POLL_SECONDS = max(0.0, _as_float(os.environ.get('SYNC_POLL_SECONDS'), 2.0))
    NOTIFICATION_TTL_SECONDS = max(0.1, _as_float(os.environ.get('NOTIFICATION_TTL_SECONDS'), 4.0))
    TRASH_RETENTION_DAYS = max(1, _as_int(os.environ.get('TRASH_RETENTION_DAYS'), 30))

    # Generative AI collaborator
    GEMINI_API_KEY = (os.environ.get('GEMINI_API_KEY') or os.environ.get('API_KEY') or '').strip()
    GEMINI_MODEL = (os.environ.get('GEMINI_MODEL') or 'gemini-2.5-flash').strip()
    GEMINI_API_BASE = (
        os.environ.get('GEMINI_API_BASE') or 'https://generativelanguage.googleapis.com/v1beta'
    ).rstrip('/')
    AI_TIMEOUT_SECONDS = max(1, _as_int(os.environ.get('AI_TIMEOUT_SECONDS'), 30))

    MAX_CONTENT_LENGTH = 8 * 1024 * 1024  # 8MB max upload (soil photos, backups)
    MAX_UPLOAD_IMAGE_PIXELS = _as_int(os.environ.get('MAX_UPLOAD_IMAGE_PIXELS'), 40_000_000)
    ALLOWED_IMAGE_MIME_TYPES = {
        'image/png',
        'image/jpeg',
        'image/webp',
        'image/gif',
    }

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = _as_bool(
        os.environ.get('SESSION_COOKIE_SECURE'),
        ((os.environ.get('PREFERRED_URL_SCHEME') or '').lower() == 'https') or _is_production_runtime(),
    )
    # Visit markers live in the browser session cookie; keep it non-permanent.
    SESSION_PERMANENT = False
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = 'Lax'
    REMEMBER_COOKIE_SECURE = SESSION_COOKIE_SECURE
    TRUST_PROXY_HEADERS = _as_bool(os.environ.get('TRUST_PROXY_HEADERS'), _is_managed_runtime())
    PREFERRED_URL_SCHEME = os.environ.get('PREFERRED_URL_SCHEME') or ('https' if SESSION_COOKIE_SECURE else 'http')
    HSTS_ENABLED = _as_bool(os.environ.get('HSTS_ENABLED'), True)
    HSTS_MAX_AGE = _as_int(os.environ.get('HSTS_MAX_AGE'), 31536000)
    HSTS_INCLUDE_SUBDOMAINS = _as_bool(os.environ.get('HSTS_INCLUDE_SUBDOMAINS'), True)
    HSTS_PRELOAD = _as_bool(os.environ.get('HSTS_PRELOAD'), False)
    CSRF_ENABLED = _as_bool(os.environ.get('CSRF_ENABLED'), True)

    SENTRY_DSN = (os.environ.get('SENTRY_DSN') or '').strip()
    SENTRY_ENVIRONMENT = (os.environ.get('SENTRY_ENVIRONMENT') or '').strip()
    SENTRY_TRACES_SAMPLE_RATE = _as_float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE'), 0.0)
    LOG_JSON = _as_bool(os.environ.get('LOG_JSON'), True)
    LOG_LEVEL = (os.environ.get('LOG_LEVEL') or 'INFO').strip().upper()
