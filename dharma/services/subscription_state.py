"""Application-scoped read-through cache of subscription records."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from ..domain.models.subscription import SubscriptionRecord
from ..domain.ports.persistence import SubscriptionStore

logger = logging.getLogger(__name__)


class SubscriptionStateCache:
    """
    Caches the latest known record per user in front of the store.

    Writers call ``put`` with the record the store returned, and anything
    that may have changed the row behind our back calls ``invalidate`` so
    the next ``get`` goes to the store.

    A store read only fills the cache if no ``put``, ``invalidate`` or
    ``clear`` happened while it was in flight. Users without a record are
    not cached.
    """

    def __init__(self, store: SubscriptionStore) -> None:
        self._store = store
        self._records: Dict[str, SubscriptionRecord] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[SubscriptionRecord]:
        with self._lock:
            cached = self._records.get(user_id)
            generation = self._generation
        if cached is not None:
            return cached

        record = self._store.get_by_user(user_id)
        if record is None:
            return None
        with self._lock:
            if self._generation == generation:
                self._records[user_id] = record
            else:
                logger.debug("Discarding store read for user %s raced by a write", user_id)
        return record

    def put(self, record: SubscriptionRecord) -> SubscriptionRecord:
        with self._lock:
            self._generation += 1
            self._records[record.user_id] = record
        return record

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._generation += 1
            self._records.pop(user_id, None)
        logger.debug("Invalidated cached subscription for user %s", user_id)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._records.clear()
