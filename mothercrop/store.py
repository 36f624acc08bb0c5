"""The site store: one in-memory site document plus its mutation API.

Every mutation builds an updated copy of the document under the store lock,
writes it through the storage adapter and only then swaps it in. Other stores
sharing the hub hear about the change once the lock is released. Reads go
through :attr:`SiteStore.data`; callers must treat it as read-only and route
every change through a mutation method.
"""
import copy
import logging
import threading
import time
from collections import namedtuple
from contextlib import contextmanager

from slugify import slugify

from .defaults import default_site_data
from .exports import BackupImportError, looks_like_backup
from .merge import merge_site_data
from .models import (
    CHAT_ROLE_USER,
    MAX_CHAT_MESSAGES,
    MAX_CHAT_SESSIONS,
    MAX_SOIL_RECORDS,
    POST_STATUS_DRAFT,
    POST_STATUS_TRASH,
    SOIL_MODE_PLANT,
    TRASH_RETENTION_DAYS,
    section_shape_errors,
)
from .notifications import NotificationQueue
from .utils import display_date, display_datetime, iso_timestamp, utc_now

logger = logging.getLogger(__name__)

NEW_CONVERSATION_PREVIEW = 'New Conversation'


class InvalidSectionUpdate(ValueError):
    def __init__(self, section, errors):
        self.section = section
        self.errors = list(errors)
        super().__init__(f'Invalid update for section "{section}": ' + ' '.join(self.errors))


class SectionUpdate(namedtuple('SectionUpdate', ['section', 'payload'])):
    """A checked replacement of one top-level section."""

    __slots__ = ()

    @classmethod
    def build(cls, section, payload):
        errors = section_shape_errors(section, payload)
        if errors:
            raise InvalidSectionUpdate(section, errors)
        return cls(section, copy.deepcopy(payload))


def visit_count(value):
    """A stored traffic counter as a non-negative int; anything unusable counts as 0."""
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


class IdGenerator:
    """Millisecond-timestamp ids that never repeat within one process."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_int(self):
        with self._lock:
            candidate = int(self._clock() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return candidate

    def next_tagged(self, prefix):
        return f'{prefix}-{self.next_int()}'


class SiteStore:
    def __init__(
        self,
        adapter,
        defaults=None,
        notifications=None,
        id_generator=None,
        clock=None,
        retention_days=TRASH_RETENTION_DAYS,
    ):
        self.adapter = adapter
        self.defaults = copy.deepcopy(defaults) if defaults is not None else default_site_data()
        self.notifications = notifications or NotificationQueue()
        self.ids = id_generator or IdGenerator()
        self.clock = clock or utc_now
        self.retention_days = retention_days
        self._lock = threading.RLock()
        self._depth = 0
        self._outgoing = []
        self._data = copy.deepcopy(self.defaults)

    # -- reading -----------------------------------------------------------

    @property
    def data(self):
        return self._data

    def snapshot(self):
        with self._lock:
            return copy.deepcopy(self._data)

    def merge(self, raw):
        return merge_site_data(raw, self.defaults, now=self.clock(), retention_days=self.retention_days)

    def load(self):
        """Adopt whatever the adapter has persisted, merged over the defaults."""
        parsed = self.adapter.load()
        with self._lock:
            if parsed is not None:
                self._data = self.merge(parsed)
            return self._data

    def adopt(self, raw):
        """Replace in-memory state with another writer's document, without saving it back."""
        merged = self.merge(raw)
        with self._lock:
            self._data = merged
        return merged

    # -- generic mutations -------------------------------------------------

    @contextmanager
    def _locked(self):
        """Hold the store lock. Change events are published after the outermost holder releases it."""
        outgoing = []
        try:
            with self._lock:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                    if not self._depth:
                        outgoing, self._outgoing = self._outgoing, []
        finally:
            for payload in outgoing:
                self.adapter.publish(payload)

    def _commit(self, document):
        # Memory only follows a write that reached storage.
        self._outgoing.append(self.adapter.write(document))
        self._data = document
        return document

    def _mutate(self, change):
        with self._locked():
            updated = dict(self._data)
            result = change(updated)
            self._commit(updated)
            return result

    def replace_sections(self, partial):
        """Shallow-overlay ``partial`` onto the document. No validation."""
        with self._locked():
            return self._commit({**self._data, **copy.deepcopy(dict(partial))})

    def apply(self, *updates):
        with self._locked():
            return self.replace_sections({update.section: update.payload for update in updates})

    def update_section(self, section, payload):
        return self.apply(SectionUpdate.build(section, payload))

    def reset_all(self):
        with self._locked():
            self.adapter.remove()
            self._data = copy.deepcopy(self.defaults)
            self._outgoing.append(None)
            return self._data

    def import_backup(self, parsed):
        if not looks_like_backup(parsed):
            raise BackupImportError('Invalid backup file')
        return self.replace_sections(self.merge(parsed))

    # -- analytics ---------------------------------------------------------

    def record_page_visit(self, page_id, session=None):
        """Count one view of ``page_id`` per browser session. Returns True when counted."""
        with self._locked():
            if not self.adapter.mark_visited(page_id, session):
                return False

            def change(document):
                stats = document.get('trafficStats')
                stats = dict(stats) if isinstance(stats, dict) else {}
                stats[page_id] = visit_count(stats.get(page_id)) + 1
                document['trafficStats'] = stats
                return True

            try:
                return self._mutate(change)
            except Exception:
                self.adapter.forget_visit(page_id, session)
                raise

    # -- chat --------------------------------------------------------------

    def upsert_chat_session(self, session_id, messages):
        messages = list(messages or [])
        preview = next(
            (m.get('text') for m in messages if isinstance(m, dict) and m.get('role') == CHAT_ROLE_USER and m.get('text')),
            NEW_CONVERSATION_PREVIEW,
        )
        session = {
            'id': session_id,
            'date': display_datetime(self.clock()),
            'messages': copy.deepcopy(messages[-MAX_CHAT_MESSAGES:]),
            'preview': preview,
        }

        def change(document):
            history = list(document.get('chatHistory') or [])
            index = next((i for i, item in enumerate(history) if item.get('id') == session_id), None)
            if index is None:
                history.insert(0, session)
            else:
                history[index] = session
            document['chatHistory'] = history[:MAX_CHAT_SESSIONS]
            return session

        return self._mutate(change)

    def get_chat_session(self, session_id):
        for session in self._data.get('chatHistory') or []:
            if session.get('id') == session_id:
                return copy.deepcopy(session)
        return None

    # -- soil lab ----------------------------------------------------------

    def record_soil_analysis(self, result, location=None):
        record = copy.deepcopy(dict(result))
        prefix = 'plant' if record.get('mode') == SOIL_MODE_PLANT else 'soil'
        record['id'] = self.ids.next_tagged(prefix)
        record['date'] = display_datetime(self.clock())
        if location:
            record['location'] = location

        def change(document):
            history = [record] + list(document.get('soilLabHistory') or [])
            document['soilLabHistory'] = history[:MAX_SOIL_RECORDS]
            return record

        return self._mutate(change)

    # -- inbox -------------------------------------------------------------

    def add_subscriber(self, email):
        """Append ``email`` unless it is already subscribed (exact match). Returns True when added."""
        with self._locked():
            if any(item.get('email') == email for item in self._data.get('subscribers') or []):
                return False

            def change(document):
                document['subscribers'] = list(document.get('subscribers') or []) + [{
                    'id': self.ids.next_int(),
                    'email': email,
                    'date': display_date(self.clock()),
                }]
                return True

            return self._mutate(change)

    def add_contact_message(self, fields):
        message = copy.deepcopy(dict(fields))
        message['id'] = self.ids.next_int()
        message['date'] = display_datetime(self.clock())

        def change(document):
            document['contactMessages'] = list(document.get('contactMessages') or []) + [message]
            return message

        return self._mutate(change)

    # -- notifications -----------------------------------------------------

    def notify(self, message, level='info'):
        return self.notifications.push(message, level)

    # -- blog lifecycle ----------------------------------------------------

    def find_post(self, post_id):
        for post in self._data.get('blog') or []:
            if post.get('id') == post_id:
                return post
        return None

    def _change_post(self, post_id, edit):
        def change(document):
            posts = list(document.get('blog') or [])
            for index, post in enumerate(posts):
                if post.get('id') == post_id:
                    posts[index] = edit(dict(post))
                    document['blog'] = posts
                    return posts[index]
            return None

        with self._locked():
            if self.find_post(post_id) is None:
                return None
            return self._mutate(change)

    def create_post(self, author='Admin', **fields):
        now = self.clock()
        title = fields.pop('title', None) or 'Untitled Post'
        post = {
            'id': self.ids.next_int(),
            'title': title,
            'slug': slugify(title) or 'untitled-post',
            'excerpt': 'Summary...',
            'content': 'Content...',
            'date': display_date(now),
            'author': author,
            'category': 'General',
            'imageUrl': 'https://picsum.photos/800/600',
            'status': POST_STATUS_DRAFT,
            'seo': {'metaTitle': '', 'metaDescription': '', 'keywords': ''},
        }
        post.update(copy.deepcopy(fields))
        post['status'] = POST_STATUS_DRAFT
        post.pop('deletedAt', None)

        def change(document):
            document['blog'] = [post] + list(document.get('blog') or [])
            return post

        return self._mutate(change)

    def update_post(self, post_id, fields):
        fields = copy.deepcopy(dict(fields))
        fields.pop('id', None)

        def edit(post):
            seo = fields.pop('seo', None)
            post.update(fields)
            if isinstance(seo, dict):
                post['seo'] = {**(post.get('seo') or {}), **seo}
            if post.get('status') != POST_STATUS_TRASH:
                post.pop('deletedAt', None)
            return post

        return self._change_post(post_id, edit)

    def trash_post(self, post_id):
        deleted_at = iso_timestamp(self.clock())

        def edit(post):
            post['status'] = POST_STATUS_TRASH
            post['deletedAt'] = deleted_at
            return post

        return self._change_post(post_id, edit)

    def restore_post(self, post_id):
        def edit(post):
            post['status'] = POST_STATUS_DRAFT
            post.pop('deletedAt', None)
            return post

        return self._change_post(post_id, edit)

    def delete_post(self, post_id):
        with self._locked():
            if self.find_post(post_id) is None:
                return False

            def change(document):
                document['blog'] = [post for post in document.get('blog') or [] if post.get('id') != post_id]
                return True

            return self._mutate(change)

    def empty_trash(self):
        """Permanently remove every trashed post regardless of age. Returns how many went."""
        def change(document):
            posts = list(document.get('blog') or [])
            kept = [post for post in posts if post.get('status') != POST_STATUS_TRASH]
            document['blog'] = kept
            return len(posts) - len(kept)

        return self._mutate(change)
