import itertools
import threading
import time

from .models import normalize_notify_level

DEFAULT_NOTIFICATION_TTL_SECONDS = 4.0


def _no_channel():
    return None


class NotificationQueue:
    """Process-local toast messages that expire on their own.

    Entries are never persisted. Expiry is checked whenever the queue is
    read, so a toast disappears ``ttl_seconds`` after it was pushed whether or
    not anything displayed it.

    ``channel`` returns the key of the audience currently pushing or reading
    (the web app passes one per browser session); a reader only ever sees the
    toasts pushed on its own channel.
    """

    def __init__(self, ttl_seconds=DEFAULT_NOTIFICATION_TTL_SECONDS, clock=time.monotonic, channel=None):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._channel = channel or _no_channel
        self._ids = itertools.count(1)
        self._entries = []
        self._lock = threading.Lock()

    def _prune(self, now):
        self._entries = [entry for entry in self._entries if entry[0] > now]

    def push(self, message, level='info'):
        notification = {
            'id': next(self._ids),
            'message': str(message or ''),
            'type': normalize_notify_level(level),
        }
        channel = self._channel()
        with self._lock:
            now = self._clock()
            self._prune(now)
            self._entries.append((now + self.ttl_seconds, channel, notification))
        return dict(notification)

    def active(self):
        channel = self._channel()
        with self._lock:
            self._prune(self._clock())
            return [dict(notification) for _, owner, notification in self._entries if owner == channel]

    def dismiss(self, notification_id):
        channel = self._channel()
        with self._lock:
            before = len(self._entries)
            self._entries = [
                entry for entry in self._entries
                if not (entry[1] == channel and entry[2]['id'] == notification_id)
            ]
            return len(self._entries) != before

    def clear(self):
        with self._lock:
            self._entries = []
