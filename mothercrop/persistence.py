"""Single-key document storage for the site store.

The whole site document lives in one ``storage_record`` row, serialized as
JSON and overwritten on every save. A :class:`StorageChangeHub` tells every
other adapter bound to the same hub that the key changed, the way a browser
notifies the other tabs of a storage write.
"""
import json
import logging

from sqlalchemy.exc import SQLAlchemyError

from .models import StorageRecord, db

logger = logging.getLogger(__name__)

VISITED_MARKER_PREFIX = 'visited_'


class StorageChangeHub:
    """Fan-out of ``(key, new_value)`` change events between adapters."""

    def __init__(self):
        self._listeners = []

    def subscribe(self, callback, source=None):
        entry = (callback, source)
        self._listeners.append(entry)
        return entry

    def unsubscribe(self, entry):
        try:
            self._listeners.remove(entry)
        except ValueError:
            pass

    def publish(self, key, new_value, source=None):
        for callback, listener_source in list(self._listeners):
            # Writers never observe their own change events.
            if source is not None and listener_source is source:
                continue
            try:
                callback(key, new_value)
            except Exception:
                logger.exception('Storage change listener failed for key %s.', key)


class StorageAdapter:
    def __init__(self, key, hub=None):
        self.key = key
        self.hub = hub
        self.session_markers = {}
        self._seen_revision = 0

    def _record(self):
        return StorageRecord.query.filter_by(key=self.key).first()

    def read_raw(self):
        record = self._record()
        if record is None:
            return None
        self._seen_revision = record.revision or 0
        return record.value

    def load(self):
        raw = self.read_raw()
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            logger.exception('Stored site data under %s is not valid JSON; keeping current state.', self.key)
            return None

    def write(self, document):
        """Persist ``document`` without telling other adapters. Returns the stored payload."""
        payload = json.dumps(document, ensure_ascii=False)
        try:
            record = self._record()
            if record is None:
                record = StorageRecord(key=self.key, value=payload, revision=1)
                db.session.add(record)
            else:
                record.value = payload
                record.revision = (record.revision or 0) + 1
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Failed to persist site data under %s.', self.key)
            raise
        self._seen_revision = record.revision
        return payload

    def remove(self):
        try:
            StorageRecord.query.filter_by(key=self.key).delete()
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Failed to clear site data under %s.', self.key)
            raise
        self._seen_revision = 0

    def publish(self, payload):
        if self.hub is not None:
            self.hub.publish(self.key, payload, source=self)

    def save(self, document):
        self.publish(self.write(document))

    def clear(self):
        self.remove()
        self.publish(None)

    def pending_external_revision(self):
        """Return the stored revision when another writer changed the key since we last looked."""
        revision = (
            db.session.query(StorageRecord.revision)
            .filter(StorageRecord.key == self.key)
            .scalar()
        )
        if revision is None or revision == self._seen_revision:
            return None
        return revision

    def acknowledge(self, revision):
        self._seen_revision = revision or 0

    def mark_visited(self, page_id, session=None):
        """Set the per-session visit marker; True when this is the first visit."""
        markers = self.session_markers if session is None else session
        marker = f'{VISITED_MARKER_PREFIX}{page_id}'
        if markers.get(marker):
            return False
        markers[marker] = True
        return True

    def forget_visit(self, page_id, session=None):
        markers = self.session_markers if session is None else session
        markers.pop(f'{VISITED_MARKER_PREFIX}{page_id}', None)
