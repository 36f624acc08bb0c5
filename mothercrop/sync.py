"""Keep a store in step with writes made by other stores on the same key.

Two delivery paths feed the same handler: push events from a shared
:class:`~mothercrop.persistence.StorageChangeHub` (stores living in one
process) and :meth:`SyncListener.poll`, which notices revisions written by
other processes. Whatever document arrives last replaces the local one
wholesale; there is no field-level reconciliation between writers.
"""
import json
import logging

logger = logging.getLogger(__name__)


class SyncListener:
    def __init__(self, store, hub=None):
        self.store = store
        self.hub = hub
        self._subscription = None

    @property
    def key(self):
        return self.store.adapter.key

    def start(self):
        if self.hub is not None and self._subscription is None:
            self._subscription = self.hub.subscribe(self.handle_change, source=self.store.adapter)
        return self

    def stop(self):
        if self.hub is not None and self._subscription is not None:
            self.hub.unsubscribe(self._subscription)
        self._subscription = None

    def handle_change(self, key, new_value):
        """Adopt ``new_value`` when it is a parseable write to our key. Returns True when adopted."""
        if key != self.key or not new_value:
            return False
        try:
            parsed = json.loads(new_value)
        except (TypeError, json.JSONDecodeError):
            logger.exception('Ignoring unparsable site data change for key %s.', key)
            return False
        self.store.adopt(parsed)
        logger.info('Adopted site data written by another store (key=%s).', key)
        return True

    def poll(self):
        adapter = self.store.adapter
        revision = adapter.pending_external_revision()
        if revision is None:
            return False
        raw = adapter.read_raw()
        if raw is None:
            adapter.acknowledge(revision)
            return False
        return self.handle_change(self.key, raw)
