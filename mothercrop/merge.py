"""Reconcile a persisted or imported site document with the defaults.

Old documents were written before some fields existed (service ``details``,
blog ``seo``/``status``/``deletedAt``). There is no version number in the
document; every load runs the same backfill rules instead, so the result is
always a complete, current-shape document.
"""
import copy
from datetime import timedelta

from .defaults import default_site_data
from .models import (
    ARRAY_SECTIONS,
    POST_STATUS_PUBLISHED,
    POST_STATUS_TRASH,
    TRASH_RETENTION_DAYS,
)
from .utils import parse_iso_timestamp, utc_now


def legacy_slug(title):
    if not title:
        return 'post'
    return str(title).lower().replace(' ', '-')


def backfill_post(post):
    """Return a copy of ``post`` with every field downstream code reads."""
    merged = dict(post)
    title = post.get('title')
    excerpt = post.get('excerpt')
    merged['seo'] = post.get('seo') or {
        'metaTitle': title or '',
        'metaDescription': excerpt or '',
        'keywords': '',
    }
    merged['slug'] = post.get('slug') or legacy_slug(title)
    merged['content'] = post.get('content') or excerpt or ''
    # Records written before the trash feature carry no status; they were live.
    merged['status'] = post.get('status') or POST_STATUS_PUBLISHED
    if post.get('deletedAt'):
        merged['deletedAt'] = post['deletedAt']
    else:
        merged.pop('deletedAt', None)
    return merged


def is_expired_trash(post, cutoff):
    if post.get('status') != POST_STATUS_TRASH:
        return False
    deleted_at = parse_iso_timestamp(post.get('deletedAt'))
    if deleted_at is None:
        return False
    return deleted_at <= cutoff


def evict_expired_trash(posts, now=None, retention_days=TRASH_RETENTION_DAYS):
    cutoff = (now or utc_now()) - timedelta(days=retention_days)
    return [post for post in posts if not is_expired_trash(post, cutoff)]


def merge_blog(raw_blog, default_blog, now=None, retention_days=TRASH_RETENTION_DAYS):
    if isinstance(raw_blog, list):
        posts = [backfill_post(post) for post in raw_blog if isinstance(post, dict)]
    else:
        posts = copy.deepcopy(default_blog)
    return evict_expired_trash(posts, now=now, retention_days=retention_days)


def merge_services_page(raw_section, default_section):
    if not isinstance(raw_section, dict):
        return copy.deepcopy(default_section)
    merged = dict(raw_section)
    raw_items = raw_section.get('items')
    default_items = default_section.get('items') or []
    if isinstance(raw_items, list):
        items = []
        for index, item in enumerate(raw_items):
            if not isinstance(item, dict):
                continue
            fallback = default_items[index] if index < len(default_items) else {}
            items.append({**item, 'details': item.get('details') or fallback.get('details') or ''})
        merged['items'] = items
    else:
        merged['items'] = copy.deepcopy(default_items)
    return merged


def merge_site_data(raw, defaults=None, now=None, retention_days=TRASH_RETENTION_DAYS):
    """Produce a complete site document from ``raw`` and ``defaults``.

    Pure: neither argument is modified. Time only matters for trash expiry,
    so passing the same ``now`` always yields the same document.
    """
    defaults = default_site_data() if defaults is None else copy.deepcopy(defaults)
    raw = copy.deepcopy(raw) if isinstance(raw, dict) else {}

    merged = dict(defaults)
    for section, value in raw.items():
        # ``null`` sections count as absent so the document stays complete.
        if value is None and section in defaults:
            continue
        merged[section] = value

    for section in ARRAY_SECTIONS:
        value = raw.get(section)
        merged[section] = value if isinstance(value, list) else defaults.get(section, [])

    for section in ('home', 'about', 'trafficStats'):
        if not isinstance(merged.get(section), dict):
            merged[section] = defaults.get(section, {})

    merged['blog'] = merge_blog(raw.get('blog'), defaults.get('blog', []), now=now, retention_days=retention_days)
    merged['servicesPage'] = merge_services_page(raw.get('servicesPage'), defaults.get('servicesPage', {}))

    raw_contact = raw.get('contact')
    merged['contact'] = {
        **defaults.get('contact', {}),
        **(raw_contact if isinstance(raw_contact, dict) else {}),
    }
    return merged
