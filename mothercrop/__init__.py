import re
import secrets
import json
import logging
import time
from flask import Flask, abort, current_app, g, has_request_context, jsonify, request, session
from flask_login import LoginManager
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

try:
    from .config import Config
    from .models import db, SiteUser, StorageRecord
    from .notifications import NotificationQueue
    from .persistence import StorageAdapter, StorageChangeHub
    from .store import SiteStore
    from .sync import SyncListener
except ImportError:  # pragma: no cover - fallback when running from mothercrop/ as script root
    from config import Config
    from models import db, SiteUser, StorageRecord
    from notifications import NotificationQueue
    from persistence import StorageAdapter, StorageChangeHub
    from store import SiteStore
    from sync import SyncListener

login_manager = LoginManager()
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{8,80}$")
_sentry_initialized = False


class JsonLogFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'time': self.formatTime(record, self.datefmt),
        }
        if has_request_context():
            payload.update(
                {
                    'request_id': getattr(g, 'request_id', ''),
                    'method': request.method,
                    'path': request.path,
                    'remote_ip': request.remote_addr,
                }
            )
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    app.logger.setLevel(level)
    # Store, sync and AI modules log under the package logger.
    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(level)
    if not app.config.get('LOG_JSON', True):
        return
    formatter = JsonLogFormatter()
    for handler in app.logger.handlers:
        handler.setFormatter(formatter)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)


@login_manager.user_loader
def load_user(user_id):
    store = current_app.extensions.get('site_store')
    if store is None:
        return None
    for record in store.data.get('users') or []:
        if str(record.get('id')) == str(user_id):
            return SiteUser(record)
    return None


@login_manager.unauthorized_handler
def handle_unauthorized():
    return error_response('Authentication required.', 401)


def get_site_store():
    return current_app.extensions['site_store']


def get_csrf_token():
    token = session.get('_csrf_token')
    if not token:
        token = secrets.token_urlsafe(32)
        session['_csrf_token'] = token
    return token


TOAST_CHANNEL_SESSION_KEY = '_toast_channel'


def notification_channel():
    """The toast channel of the current browser session; None outside a request."""
    if not has_request_context():
        return None
    channel = session.get(TOAST_CHANNEL_SESSION_KEY)
    if not channel:
        channel = secrets.token_urlsafe(16)
        session[TOAST_CHANNEL_SESSION_KEY] = channel
    return channel


def error_response(message, status):
    store = current_app.extensions.get('site_store')
    notifications = store.notifications.active() if store is not None else []
    response = jsonify({'error': message, 'notifications': notifications})
    response.status_code = status
    return response


def init_sentry(app):
    global _sentry_initialized
    if _sentry_initialized:
        return

    dsn = (app.config.get('SENTRY_DSN') or '').strip()
    if not dsn:
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        traces_sample_rate = float(app.config.get('SENTRY_TRACES_SAMPLE_RATE') or 0.0)
        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=traces_sample_rate,
            environment=(app.config.get('SENTRY_ENVIRONMENT') or None),
        )
        _sentry_initialized = True
        app.logger.info('Sentry monitoring enabled.')
    except Exception:
        app.logger.exception('Failed to initialize Sentry monitoring.')


def init_site_store(app, hub=None):
    """Build the process-wide store, load persisted data and start listening for other writers."""
    hub = hub or StorageChangeHub()
    adapter = StorageAdapter(app.config['STORAGE_KEY'], hub=hub)
    store = SiteStore(
        adapter,
        notifications=NotificationQueue(
            ttl_seconds=app.config['NOTIFICATION_TTL_SECONDS'],
            channel=notification_channel,
        ),
        retention_days=app.config['TRASH_RETENTION_DAYS'],
    )
    store.load()
    listener = SyncListener(store, hub).start()
    app.extensions['storage_hub'] = hub
    app.extensions['site_store'] = store
    app.extensions['site_sync'] = listener
    return store


def create_app(config_overrides=None, storage_hub=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    configure_logging(app)

    if not app.config.get('SECRET_KEY'):
        import warnings
        app.config['SECRET_KEY'] = secrets.token_urlsafe(32)
        warnings.warn(
            'SECRET_KEY is not set, using a random key. '
            'Sessions will not survive restarts. '
            'Set the SECRET_KEY environment variable for production.',
            stacklevel=2,
        )

    if app.config.get('TRUST_PROXY_HEADERS'):
        # Only trust one proxy hop (the platform edge) when explicitly enabled.
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    init_sentry(app)

    db.init_app(app)
    login_manager.init_app(app)

    @app.before_request
    def assign_request_id():
        incoming = (request.headers.get('X-Request-ID') or '').strip()
        if _REQUEST_ID_RE.match(incoming):
            g.request_id = incoming
        else:
            g.request_id = secrets.token_hex(16)

    @app.before_request
    def enforce_csrf():
        if not app.config.get('CSRF_ENABLED', True):
            return
        if request.method not in ('POST', 'PUT', 'PATCH', 'DELETE'):
            return
        expected = session.get('_csrf_token')
        provided = request.headers.get('X-CSRF-Token') or request.form.get('_csrf_token')
        if not expected or not provided or not secrets.compare_digest(expected, provided):
            abort(400, description='Invalid or missing CSRF token.')

    @app.before_request
    def pull_external_changes():
        now = time.monotonic()
        last_run = app.extensions.get('site_sync_last_poll')
        if last_run is not None and (now - last_run) < app.config['SYNC_POLL_SECONDS']:
            return
        app.extensions['site_sync_last_poll'] = now
        try:
            app.extensions['site_sync'].poll()
        except SQLAlchemyError:
            db.session.rollback()
            app.logger.exception('Polling for external site data changes failed.')

    @app.after_request
    def add_security_headers(response):
        response.headers['X-Request-ID'] = getattr(g, 'request_id', '')
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('X-Frame-Options', 'DENY')
        response.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
        response.headers.setdefault('Permissions-Policy', 'geolocation=(), microphone=(), camera=()')
        response.headers.setdefault('Cross-Origin-Resource-Policy', 'same-origin')
        response.headers.setdefault('Cross-Origin-Opener-Policy', 'same-origin')
        response.headers.setdefault('Content-Security-Policy', "default-src 'none'; frame-ancestors 'none'")
        if request.is_secure and app.config.get('HSTS_ENABLED', True):
            hsts_max_age = max(0, int(app.config.get('HSTS_MAX_AGE', 31536000)))
            hsts_parts = [f'max-age={hsts_max_age}']
            if app.config.get('HSTS_INCLUDE_SUBDOMAINS', True):
                hsts_parts.append('includeSubDomains')
            if app.config.get('HSTS_PRELOAD', False):
                hsts_parts.append('preload')
            response.headers.setdefault('Strict-Transport-Security', '; '.join(hsts_parts))
        if request.path.startswith('/admin'):
            response.headers.setdefault('X-Robots-Tag', 'noindex, nofollow, noarchive')
            response.headers.setdefault('Cache-Control', 'no-store')
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return error_response(error.description or error.name, error.code or 500)

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(error):
        db.session.rollback()
        app.logger.exception('Site data storage is unavailable.')
        return error_response('Storage is temporarily unavailable.', 503)

    @app.errorhandler(500)
    def handle_server_error(error):
        return error_response('Internal server error.', 500)

    @app.get('/healthz')
    def healthz():
        try:
            db.session.execute(text('SELECT 1'))
            return {'status': 'ok'}, 200
        except SQLAlchemyError:
            db.session.rollback()
            app.logger.exception('Health check database query failed.')
            return {'status': 'degraded'}, 503

    @app.get('/readyz')
    def readyz():
        checks = {
            'database': False,
            'site_store_loaded': 'site_store' in app.extensions,
            'site_data_persisted': False,
        }
        try:
            db.session.execute(text('SELECT 1'))
            checks['database'] = True
            checks['site_data_persisted'] = (
                db.session.query(StorageRecord.id).filter_by(key=app.config['STORAGE_KEY']).first() is not None
            )
            ready = checks['database'] and checks['site_store_loaded']
            return {'status': 'ready' if ready else 'warming', 'checks': checks}, (200 if ready else 503)
        except SQLAlchemyError:
            db.session.rollback()
            app.logger.exception('Readiness check failed.')
            return {'status': 'degraded', 'checks': checks}, 503

    try:
        from .routes.main import main_bp
        from .routes.admin import admin_bp
    except ImportError:  # pragma: no cover - fallback for script-style execution
        from routes.main import main_bp
        from routes.admin import admin_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp, url_prefix='/admin')

    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError:
            app.logger.exception('db.create_all() failed, tables may need manual migration.')
        init_site_store(app, hub=storage_hub)

    return app
