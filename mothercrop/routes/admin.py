import secrets
from functools import wraps
import bleach
from flask import Blueprint, Response, abort, current_app, jsonify, request, session
from flask_login import login_user, logout_user, login_required, current_user
from slugify import slugify

try:
    from .. import TOAST_CHANNEL_SESSION_KEY, error_response, get_csrf_token, get_site_store
    from ..ai import AIConfigurationError, AIError, client_for_app, generate_blog_post
    from ..exports import BackupImportError, backup_filename, export_backup, parse_backup, soil_history_csv
    from ..forms import BlogPostForm, BlogTopicForm, LoginForm, ServiceForm, UserForm
    from ..models import (
        NOTIFY_ERROR,
        NOTIFY_INFO,
        NOTIFY_SUCCESS,
        PAGE_IDS,
        POST_STATUS_DRAFT,
        POST_STATUS_PUBLISHED,
        POST_STATUS_TRASH,
        POST_STATUSES,
        SiteUser,
        normalize_post_status,
        normalize_user_role,
    )
    from ..persistence import VISITED_MARKER_PREFIX
    from ..store import InvalidSectionUpdate, visit_count
    from ..utils import clean_text
    from ..weather import current_farm_weather
    from .main import invalid_form_response, with_notifications
except ImportError:  # pragma: no cover - fallback when running from mothercrop/ cwd
    from __init__ import TOAST_CHANNEL_SESSION_KEY, error_response, get_csrf_token, get_site_store
    from ai import AIConfigurationError, AIError, client_for_app, generate_blog_post
    from exports import BackupImportError, backup_filename, export_backup, parse_backup, soil_history_csv
    from forms import BlogPostForm, BlogTopicForm, LoginForm, ServiceForm, UserForm
    from models import (
        NOTIFY_ERROR,
        NOTIFY_INFO,
        NOTIFY_SUCCESS,
        PAGE_IDS,
        POST_STATUS_DRAFT,
        POST_STATUS_PUBLISHED,
        POST_STATUS_TRASH,
        POST_STATUSES,
        SiteUser,
        normalize_post_status,
        normalize_user_role,
    )
    from persistence import VISITED_MARKER_PREFIX
    from store import InvalidSectionUpdate, visit_count
    from utils import clean_text
    from weather import current_farm_weather
    from routes.main import invalid_form_response, with_notifications

admin_bp = Blueprint('admin', __name__)

SECTION_PERMISSIONS = {
    'users': 'users:manage',
    'blog': 'blog:manage',
}
ALLOWED_RICH_TEXT_TAGS = [
    'p', 'br', 'strong', 'em', 'b', 'i', 'u', 'blockquote', 'code', 'pre',
    'ul', 'ol', 'li', 'h2', 'h3', 'h4', 'a', 'img', 'hr',
]
ALLOWED_RICH_TEXT_ATTRIBUTES = {
    'a': ['href', 'title', 'target', 'rel'],
    'img': ['src', 'alt', 'title', 'width', 'height'],
}
ALLOWED_RICH_TEXT_PROTOCOLS = ['http', 'https', 'mailto']
BLOG_TEXT_FIELDS = ('title', 'excerpt', 'category', 'imageUrl', 'author')
SEO_FIELDS = ('metaTitle', 'metaDescription', 'keywords')
SOIL_CSV_FILENAME = 'soil-analysis-history.csv'


def permission_required(permission):
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if not current_user.has_permission(permission):
                abort(403, description='You do not have permission to do that.')
            return view(*args, **kwargs)
        return wrapped
    return decorator


def sanitize_html(value, max_length=200000):
    html = (value or '').strip()
    cleaned = bleach.clean(
        html,
        tags=ALLOWED_RICH_TEXT_TAGS,
        attributes=ALLOWED_RICH_TEXT_ATTRIBUTES,
        protocols=ALLOWED_RICH_TEXT_PROTOCOLS,
        strip=True,
    )
    return cleaned[:max_length]


def submitted_fields():
    if request.is_json:
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}
    return request.form


def credentials_match(stored, provided):
    return secrets.compare_digest(str(stored or '').encode('utf-8'), str(provided or '').encode('utf-8'))


def reset_session_for_login():
    """Start a fresh session, carrying over page-visit markers and the toast channel."""
    kept = {
        key: value for key, value in session.items()
        if key.startswith(VISITED_MARKER_PREFIX) or key == TOAST_CHANNEL_SESSION_KEY
    }
    session.clear()
    session.update(kept)


def find_user_record(username):
    for record in get_site_store().data.get('users') or []:
        if record.get('username') == username:
            return record
    return None


def post_fields_from_form(form, submitted):
    """Collect the blog fields present in the submission, cleaned for storage."""
    fields = {}
    for name in BLOG_TEXT_FIELDS:
        if name in submitted:
            fields[name] = clean_text(getattr(form, name).data, 600 if name == 'excerpt' else 500)
    if 'content' in submitted:
        fields['content'] = sanitize_html(form.content.data)
    if 'slug' in submitted:
        fields['slug'] = slugify(form.slug.data or fields.get('title') or '') or 'post'
    if 'status' in submitted:
        status = normalize_post_status(form.status.data, default='')
        if status not in POST_STATUSES:
            abort(400, description='Unknown post status.')
        if status == POST_STATUS_TRASH:
            abort(400, description='Use the trash endpoint to move a post to the trash.')
        fields['status'] = status
    seo_source = submitted.get('seo') if isinstance(submitted.get('seo'), dict) else submitted
    seo = {name: clean_text(str(seo_source.get(name) or ''), 600) for name in SEO_FIELDS if name in seo_source}
    if seo:
        fields['seo'] = seo
    return fields


def require_post(post_id):
    post = get_site_store().find_post(post_id)
    if post is None:
        abort(404, description='Post not found.')
    return post


def apply_section(section, payload, success_message='Changes saved successfully!'):
    store = get_site_store()
    try:
        store.update_section(section, payload)
    except InvalidSectionUpdate as exc:
        return jsonify({
            'error': 'Invalid section update.',
            'fields': {section: exc.errors},
            'notifications': store.notifications.active(),
        }), 400
    store.notify(success_message, NOTIFY_SUCCESS)
    return with_notifications({section: store.data.get(section)})


# Auth
@admin_bp.post('/login')
def login():
    store = get_site_store()
    form = LoginForm()
    if not form.validate():
        return invalid_form_response(form, 'Username and password are required.')

    record = find_user_record(clean_text(form.username.data, 80))
    if record is None or not credentials_match(record.get('password'), form.password.data):
        current_app.logger.warning('Failed admin login attempt.')
        store.notify('Invalid credentials. Please try again.', NOTIFY_ERROR)
        return error_response('Invalid credentials.', 401)

    reset_session_for_login()
    user = SiteUser(record)
    login_user(user)
    store.notify(f'Welcome back, {user.username}!', NOTIFY_SUCCESS)
    return with_notifications({'user': user.to_public_dict(), 'csrfToken': get_csrf_token()})


@admin_bp.post('/logout')
@login_required
def logout():
    logout_user()
    get_site_store().notify('Logged out successfully.', NOTIFY_INFO)
    return with_notifications({'loggedOut': True})


@admin_bp.get('/api/me')
@login_required
def me():
    return {'user': current_user.to_public_dict()}


# Dashboard
@admin_bp.get('/api/dashboard')
@permission_required('dashboard:view')
def dashboard():
    document = get_site_store().data
    traffic = {page_id: 0 for page_id in PAGE_IDS}
    stats = document.get('trafficStats')
    if isinstance(stats, dict):
        traffic.update({page_id: visit_count(count) for page_id, count in stats.items()})
    posts = [post for post in document.get('blog') or [] if isinstance(post, dict)]
    return {
        'traffic': {
            'pages': traffic,
            'total': sum(traffic.values()),
            'max': max(traffic.values(), default=0),
        },
        'counts': {
            'publishedPosts': sum(1 for post in posts if post.get('status') == POST_STATUS_PUBLISHED),
            'draftPosts': sum(1 for post in posts if post.get('status') == POST_STATUS_DRAFT),
            'trashedPosts': sum(1 for post in posts if post.get('status') == POST_STATUS_TRASH),
            'subscribers': len(document.get('subscribers') or []),
            'contactMessages': len(document.get('contactMessages') or []),
            'chatSessions': len(document.get('chatHistory') or []),
            'soilAnalyses': len(document.get('soilLabHistory') or []),
        },
        'weather': current_farm_weather(),
    }


@admin_bp.get('/api/data')
@permission_required('data:manage')
def data():
    return jsonify(get_site_store().data)


@admin_bp.put('/api/sections/<section>')
@permission_required('content:manage')
def update_section(section):
    permission = SECTION_PERMISSIONS.get(section)
    if permission and not current_user.has_permission(permission):
        abort(403, description='You do not have permission to do that.')
    if not request.is_json:
        abort(400, description='Expected a JSON body.')
    return apply_section(section, request.get_json(silent=True))


# Blog
@admin_bp.get('/api/blog')
@permission_required('blog:manage')
def posts():
    status = clean_text(request.args.get('status'), 20)
    items = get_site_store().data.get('blog') or []
    if status:
        items = [post for post in items if post.get('status') == status]
    return jsonify({'posts': items})


@admin_bp.post('/api/blog')
@permission_required('blog:manage')
def post_add():
    form = BlogPostForm()
    if not form.validate():
        return invalid_form_response(form)
    fields = post_fields_from_form(form, submitted_fields())
    fields.pop('status', None)
    author = fields.pop('author', None) or current_user.username or 'Admin'
    store = get_site_store()
    post = store.create_post(author=author, **fields)
    store.notify('New draft created.', NOTIFY_SUCCESS)
    return with_notifications({'post': post}, 201)


@admin_bp.patch('/api/blog/<int:post_id>')
@permission_required('blog:manage')
def post_edit(post_id):
    require_post(post_id)
    form = BlogPostForm()
    if not form.validate():
        return invalid_form_response(form)
    store = get_site_store()
    post = store.update_post(post_id, post_fields_from_form(form, submitted_fields()))
    store.notify('Changes saved.', NOTIFY_SUCCESS)
    return with_notifications({'post': post})


@admin_bp.post('/api/blog/<int:post_id>/trash')
@permission_required('blog:manage')
def post_trash(post_id):
    require_post(post_id)
    store = get_site_store()
    post = store.trash_post(post_id)
    store.notify('Post moved to trash.', NOTIFY_INFO)
    return with_notifications({'post': post})


@admin_bp.post('/api/blog/<int:post_id>/restore')
@permission_required('blog:manage')
def post_restore(post_id):
    post = require_post(post_id)
    if post.get('status') != POST_STATUS_TRASH:
        abort(400, description='Only trashed posts can be restored.')
    store = get_site_store()
    post = store.restore_post(post_id)
    store.notify('Post restored as draft.', NOTIFY_SUCCESS)
    return with_notifications({'post': post})


@admin_bp.delete('/api/blog/<int:post_id>')
@permission_required('blog:manage')
def post_delete(post_id):
    store = get_site_store()
    if not store.delete_post(post_id):
        abort(404, description='Post not found.')
    store.notify('Post deleted.', NOTIFY_INFO)
    return with_notifications({'deleted': post_id})


@admin_bp.post('/api/blog/empty-trash')
@permission_required('blog:manage')
def posts_empty_trash():
    store = get_site_store()
    removed = store.empty_trash()
    store.notify(f'Trash emptied ({removed} post(s) removed).', NOTIFY_INFO)
    return with_notifications({'removed': removed})


@admin_bp.post('/api/blog/generate')
@permission_required('blog:manage')
def post_generate():
    form = BlogTopicForm()
    if not form.validate():
        return invalid_form_response(form, 'Please describe a topic.')
    store = get_site_store()
    try:
        draft = generate_blog_post(client_for_app(current_app), clean_text(form.topic.data, 300))
    except AIConfigurationError:
        store.notify('AI writing is not configured.', NOTIFY_ERROR)
        return error_response('AI writing is not configured.', 503)
    except AIError:
        current_app.logger.exception('Blog draft generation failed.')
        store.notify('Could not generate a draft. Please try again.', NOTIFY_ERROR)
        return error_response('Could not generate a draft.', 502)

    post = store.create_post(
        author=current_user.username or 'Admin',
        title=clean_text(draft['title'], 220),
        slug=slugify(draft['title']) or 'post',
        excerpt=clean_text(draft['excerpt'], 600),
        content=sanitize_html(draft['content']),
        category=clean_text(draft['category'], 80),
        seo=draft['seo'],
    )
    store.notify('AI draft created.', NOTIFY_SUCCESS)
    return with_notifications({'post': post}, 201)


# Services
@admin_bp.post('/api/services')
@permission_required('content:manage')
def service_add():
    form = ServiceForm()
    if not form.validate():
        return invalid_form_response(form)
    store = get_site_store()
    services_page = dict(store.data.get('servicesPage') or {})
    service = {
        'id': store.ids.next_int(),
        'title': clean_text(form.title.data, 160) or 'New Service',
        'description': clean_text(form.description.data, 2000) or 'Description...',
        'details': clean_text(form.details.data, 20000) or 'Full details...',
        'price': clean_text(form.price.data, 60) or '$0.00',
        'iconName': clean_text(form.iconName.data, 60) or 'Sprout',
    }
    services_page['items'] = list(services_page.get('items') or []) + [service]
    store.update_section('servicesPage', services_page)
    store.notify('Service added.', NOTIFY_SUCCESS)
    return with_notifications({'service': service}, 201)


@admin_bp.delete('/api/services/<int:service_id>')
@permission_required('content:manage')
def service_delete(service_id):
    store = get_site_store()
    services_page = dict(store.data.get('servicesPage') or {})
    items = list(services_page.get('items') or [])
    kept = [item for item in items if item.get('id') != service_id]
    if len(kept) == len(items):
        abort(404, description='Service not found.')
    services_page['items'] = kept
    store.update_section('servicesPage', services_page)
    store.notify('Service deleted.', NOTIFY_INFO)
    return with_notifications({'deleted': service_id})


# Users
@admin_bp.get('/api/users')
@permission_required('users:manage')
def users():
    items = [SiteUser(record).to_public_dict() for record in get_site_store().data.get('users') or []]
    return jsonify({'users': items})


@admin_bp.post('/api/users')
@permission_required('users:manage')
def user_add():
    store = get_site_store()
    form = UserForm()
    if not form.validate():
        store.notify('Username and password required', NOTIFY_ERROR)
        return invalid_form_response(form, 'Username and password required')
    username = clean_text(form.username.data, 80)
    if find_user_record(username) is not None:
        store.notify('Username already exists', NOTIFY_ERROR)
        return error_response('Username already exists', 400)

    record = {
        'id': store.ids.next_int(),
        'username': username,
        'password': form.password.data,
        'role': normalize_user_role(form.role.data),
    }
    store.update_section('users', list(store.data.get('users') or []) + [record])
    store.notify('User added successfully.', NOTIFY_SUCCESS)
    return with_notifications({'user': SiteUser(record).to_public_dict()}, 201)


@admin_bp.delete('/api/users/<int:user_id>')
@permission_required('users:manage')
def user_delete(user_id):
    store = get_site_store()
    if user_id == current_user.user_id:
        store.notify('You cannot delete yourself.', NOTIFY_ERROR)
        return error_response('You cannot delete yourself.', 400)
    records = list(store.data.get('users') or [])
    kept = [record for record in records if record.get('id') != user_id]
    if len(kept) == len(records):
        abort(404, description='User not found.')
    store.update_section('users', kept)
    store.notify('User deleted.', NOTIFY_INFO)
    return with_notifications({'deleted': user_id})


# Inbox
@admin_bp.get('/api/subscribers')
@permission_required('inbox:view')
def subscribers():
    return jsonify({'subscribers': get_site_store().data.get('subscribers') or []})


@admin_bp.get('/api/contact-messages')
@permission_required('inbox:view')
def contact_messages():
    return jsonify({'messages': get_site_store().data.get('contactMessages') or []})


@admin_bp.get('/api/chat-history')
@permission_required('inbox:view')
def chat_history():
    return jsonify({'sessions': get_site_store().data.get('chatHistory') or []})


@admin_bp.get('/api/soil-lab')
@permission_required('inbox:view')
def soil_lab():
    return jsonify({'records': get_site_store().data.get('soilLabHistory') or []})


@admin_bp.get('/api/soil-lab/export.csv')
@permission_required('inbox:view')
def soil_lab_export():
    body = soil_history_csv(get_site_store().data.get('soilLabHistory') or [])
    return Response(
        body,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename="{SOIL_CSV_FILENAME}"'},
    )


# Data
@admin_bp.get('/api/backup')
@permission_required('data:manage')
def backup_export():
    return Response(
        export_backup(get_site_store().snapshot()),
        mimetype='application/json',
        headers={'Content-Disposition': f'attachment; filename="{backup_filename()}"'},
    )


@admin_bp.post('/api/backup')
@permission_required('data:manage')
def backup_import():
    store = get_site_store()
    upload = request.files.get('backup')
    raw = upload.read() if upload else request.get_data()
    try:
        store.import_backup(parse_backup(raw))
    except BackupImportError as exc:
        current_app.logger.warning('Rejected backup import: %s', exc)
        store.notify(str(exc), NOTIFY_ERROR)
        return error_response(str(exc), 400)
    store.notify('Data imported successfully!', NOTIFY_SUCCESS)
    return with_notifications({'imported': True})


@admin_bp.post('/api/reset')
@permission_required('data:manage')
def reset():
    store = get_site_store()
    store.reset_all()
    store.notify('All data has been reset to defaults.', NOTIFY_INFO)
    return with_notifications({'reset': True})
