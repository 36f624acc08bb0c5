import io
import re
from flask import Blueprint, abort, current_app, jsonify, request, session
from PIL import Image, UnidentifiedImageError

try:
    from .. import error_response, get_csrf_token, get_site_store
    from ..ai import (
        AIConfigurationError,
        AIError,
        ANALYSIS_FALLBACK_MESSAGE,
        CHAT_FALLBACK_REPLY,
        CHAT_UNCONFIGURED_REPLY,
        analyze_soil_image,
        chat_reply,
        client_for_app,
        plan_crop_rotation,
    )
    from ..forms import ContactMessageForm, RotationPlanForm, SoilAnalysisForm, SubscribeForm
    from ..models import (
        CHAT_ROLE_MODEL,
        CHAT_ROLE_USER,
        NOTIFY_ERROR,
        NOTIFY_INFO,
        NOTIFY_SUCCESS,
        POST_STATUS_PUBLISHED,
        normalize_page_id,
        normalize_soil_mode,
    )
    from ..store import visit_count
    from ..utils import clean_text, iso_timestamp, utc_now
except ImportError:  # pragma: no cover - fallback when running from mothercrop/ cwd
    from __init__ import error_response, get_csrf_token, get_site_store
    from ai import (
        AIConfigurationError,
        AIError,
        ANALYSIS_FALLBACK_MESSAGE,
        CHAT_FALLBACK_REPLY,
        CHAT_UNCONFIGURED_REPLY,
        analyze_soil_image,
        chat_reply,
        client_for_app,
        plan_crop_rotation,
    )
    from forms import ContactMessageForm, RotationPlanForm, SoilAnalysisForm, SubscribeForm
    from models import (
        CHAT_ROLE_MODEL,
        CHAT_ROLE_USER,
        NOTIFY_ERROR,
        NOTIFY_INFO,
        NOTIFY_SUCCESS,
        POST_STATUS_PUBLISHED,
        normalize_page_id,
        normalize_soil_mode,
    )
    from store import visit_count
    from utils import clean_text, iso_timestamp, utc_now

main_bp = Blueprint('main', __name__)

PUBLIC_SECTIONS = ('home', 'about', 'servicesPage', 'contact', 'testimonials', 'knowledgeResources')
CHAT_SESSION_ID_RE = re.compile(r'^[A-Za-z0-9_-]{1,64}$')
CHAT_MESSAGE_MAX_LENGTH = 2000
IMAGE_FORMAT_MIME_TYPES = {
    'PNG': 'image/png',
    'JPEG': 'image/jpeg',
    'WEBP': 'image/webp',
    'GIF': 'image/gif',
}


def form_errors(form):
    return {field: list(messages) for field, messages in form.errors.items()}


def invalid_form_response(form, message='Please correct the highlighted fields.'):
    return jsonify({
        'error': message,
        'fields': form_errors(form),
        'notifications': get_site_store().notifications.active(),
    }), 400


def with_notifications(payload, status=200):
    payload = dict(payload)
    payload['notifications'] = get_site_store().notifications.active()
    return jsonify(payload), status


def published_posts(document):
    return [post for post in document.get('blog') or [] if post.get('status') == POST_STATUS_PUBLISHED]


def read_uploaded_image(file):
    """Return ``(bytes, mime_type)`` for a decodable image upload, else None."""
    if not file or not file.filename:
        return None
    raw = file.read()
    if not raw:
        return None
    max_pixels = max(1, int(current_app.config.get('MAX_UPLOAD_IMAGE_PIXELS', 40_000_000)))
    try:
        with Image.open(io.BytesIO(raw)) as image:
            width, height = image.size
            if width < 1 or height < 1 or (width * height) > max_pixels:
                return None
            image_format = (image.format or '').upper()
            image.verify()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        return None
    mime_type = IMAGE_FORMAT_MIME_TYPES.get(image_format)
    if mime_type not in current_app.config.get('ALLOWED_IMAGE_MIME_TYPES', set()):
        return None
    return raw, mime_type


@main_bp.get('/api/csrf-token')
def csrf_token():
    return {'csrfToken': get_csrf_token()}


@main_bp.get('/api/site')
def site():
    document = get_site_store().data
    payload = {section: document.get(section) for section in PUBLIC_SECTIONS}
    payload['blog'] = published_posts(document)
    return jsonify(payload)


@main_bp.get('/api/blog')
def blog():
    posts = published_posts(get_site_store().data)
    category = clean_text(request.args.get('category'), 80)
    if category:
        posts = [post for post in posts if post.get('category') == category]
    return jsonify({'posts': posts})


@main_bp.get('/api/blog/<slug>')
def post(slug):
    for item in published_posts(get_site_store().data):
        if item.get('slug') == slug:
            return jsonify({'post': item})
    abort(404, description='Post not found.')


@main_bp.post('/api/visits/<page_id>')
def record_visit(page_id):
    normalized = normalize_page_id(page_id)
    if not normalized:
        abort(400, description='Unknown page identifier.')
    store = get_site_store()
    counted = store.record_page_visit(normalized, session)
    stats = store.data.get('trafficStats')
    count = visit_count(stats.get(normalized)) if isinstance(stats, dict) else 0
    return {'page': normalized, 'counted': counted, 'count': count}


@main_bp.post('/api/subscribe')
def subscribe():
    form = SubscribeForm()
    if not form.validate():
        return invalid_form_response(form, 'Please provide a valid email address.')
    store = get_site_store()
    email = clean_text(form.email.data, 254)
    if store.add_subscriber(email):
        store.notify('Subscribed successfully!', NOTIFY_SUCCESS)
        return with_notifications({'subscribed': True}, 201)
    store.notify('You are already subscribed.', NOTIFY_INFO)
    return with_notifications({'subscribed': False})


@main_bp.post('/api/contact')
def contact():
    form = ContactMessageForm()
    if not form.validate():
        return invalid_form_response(form)
    store = get_site_store()
    message = store.add_contact_message({
        'name': clean_text(form.name.data, 120),
        'email': clean_text(form.email.data, 254),
        'subject': clean_text(form.subject.data, 200),
        'message': clean_text(form.message.data, 5000),
    })
    store.notify('Message sent! We will get back to you soon.', NOTIFY_SUCCESS)
    return with_notifications({'message': message}, 201)


@main_bp.post('/api/chat')
def chat():
    payload = request.get_json(silent=True) or {}
    text = clean_text(payload.get('message'), CHAT_MESSAGE_MAX_LENGTH)
    if not text:
        abort(400, description='Message is required.')
    session_id = str(payload.get('sessionId') or '').strip()
    if session_id and not CHAT_SESSION_ID_RE.match(session_id):
        abort(400, description='Invalid chat session id.')

    store = get_site_store()
    if not session_id:
        session_id = str(store.ids.next_int())
    existing = store.get_chat_session(session_id)
    messages = list(existing['messages']) if existing else []

    try:
        reply = chat_reply(client_for_app(current_app), text, history=messages)
    except AIConfigurationError:
        reply = CHAT_UNCONFIGURED_REPLY
    except AIError:
        current_app.logger.exception('Chat reply failed.')
        reply = CHAT_FALLBACK_REPLY

    messages.append({'role': CHAT_ROLE_USER, 'text': text, 'timestamp': iso_timestamp(utc_now())})
    messages.append({'role': CHAT_ROLE_MODEL, 'text': reply, 'timestamp': iso_timestamp(utc_now())})
    chat_session = store.upsert_chat_session(session_id, messages)
    return {'sessionId': session_id, 'reply': reply, 'session': chat_session}


@main_bp.post('/api/soil-lab/analyze')
def analyze_soil():
    form = SoilAnalysisForm()
    if not form.validate():
        return invalid_form_response(form)
    store = get_site_store()
    upload = read_uploaded_image(request.files.get('image'))
    if upload is None:
        store.notify('Please upload a PNG, JPEG, WEBP or GIF image.', NOTIFY_ERROR)
        return error_response('A valid image is required.', 400)

    image, mime_type = upload
    mode = normalize_soil_mode(form.mode.data)
    try:
        result = analyze_soil_image(client_for_app(current_app), image, mime_type, mode)
    except AIConfigurationError:
        store.notify('AI analysis is not configured.', NOTIFY_ERROR)
        return error_response('AI analysis is not configured.', 503)
    except AIError:
        current_app.logger.exception('Soil analysis failed.')
        store.notify(ANALYSIS_FALLBACK_MESSAGE, NOTIFY_ERROR)
        return error_response(ANALYSIS_FALLBACK_MESSAGE, 502)

    record = store.record_soil_analysis(result, location=clean_text(form.location.data, 160) or None)
    store.notify('Analysis complete and saved to your history.', NOTIFY_SUCCESS)
    return with_notifications({'record': record}, 201)


@main_bp.post('/api/knowledge/rotation-plan')
def rotation_plan():
    payload = request.get_json(silent=True) or {}
    raw_crops = payload.get('crops')
    form = RotationPlanForm()
    if isinstance(raw_crops, list):
        form.crops.data = ', '.join(str(crop) for crop in raw_crops)
    if not form.validate():
        return invalid_form_response(form)
    crops = [clean_text(crop, 60) for crop in (form.crops.data or '').split(',') if crop.strip()]
    try:
        plan = plan_crop_rotation(
            client_for_app(current_app),
            crops,
            beds=form.beds.data or 3,
            years=form.years.data or 3,
        )
    except AIConfigurationError:
        return error_response('AI planning is not configured.', 503)
    except AIError:
        current_app.logger.exception('Crop rotation planning failed.')
        get_site_store().notify('Could not build a rotation plan. Please try again.', NOTIFY_ERROR)
        return error_response('Could not build a rotation plan.', 502)
    return {'plan': plan}


@main_bp.get('/api/notifications')
def notifications():
    return {'notifications': get_site_store().notifications.active()}
