"""Per-group permission snapshots kept fresh by document store listeners.

At most ``max_groups`` groups are followed at once; the least recently read
group is evicted and its listener removed when a new one is subscribed.
"""
import logging
import threading
from collections import OrderedDict
from typing import Dict, List, Optional
from bandsync.config.settings import settings
from bandsync.database.document_store import Document, DocumentStore, ListenerRegistration, PERMISSIONS
from bandsync.modules.permissions.resolver import decode_permissions
from bandsync.modules.permissions.schemas import PermissionModel

logger = logging.getLogger(__name__)


class PermissionCache:
    def __init__(self, store: DocumentStore, max_groups: int = 256):
        self.store = store
        self.max_groups = max(1, max_groups)
        self._lock = threading.Lock()
        self._models: Dict[str, Optional[PermissionModel]] = {}
        self._registrations: "OrderedDict[str, ListenerRegistration]" = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._registrations)

    def get(self, group_id: str) -> Optional[PermissionModel]:
        """Return the group's permissions, subscribing on first use; None when the group has none"""
        with self._lock:
            if group_id in self._registrations:
                self._registrations.move_to_end(group_id)
                return self._models.get(group_id)

        # listen() delivers the initial snapshot synchronously, so the lock is not held here
        registration = self.store.listen(
            PERMISSIONS,
            lambda documents: self._on_snapshot(group_id, documents),
            filters=[("group_id", "==", group_id)],
        )
        evicted: List[ListenerRegistration] = []
        with self._lock:
            if group_id in self._registrations:
                evicted.append(registration)
            else:
                self._registrations[group_id] = registration
                while len(self._registrations) > self.max_groups:
                    idle_group, idle_registration = self._registrations.popitem(last=False)
                    self._models.pop(idle_group, None)
                    evicted.append(idle_registration)
                    logger.debug(f"Evicted idle permissions listener for group {idle_group}")
            model = self._models.get(group_id)
        for stale in evicted:
            stale.remove()
        return model

    def put(self, group_id: str, model: Optional[PermissionModel]) -> None:
        with self._lock:
            # Only followed groups are kept; others would never be refreshed
            if group_id in self._registrations:
                self._models[group_id] = model

    def _on_snapshot(self, group_id: str, documents: List[Document]) -> None:
        model = decode_permissions(documents[0], group_id) if documents else None
        with self._lock:
            self._models[group_id] = model
        logger.debug(f"Permissions for group {group_id} refreshed ({'present' if model else 'missing'})")

    def invalidate(self, group_id: str) -> None:
        with self._lock:
            registration = self._registrations.pop(group_id, None)
            self._models.pop(group_id, None)
        if registration is not None:
            registration.remove()

    def clear(self) -> None:
        with self._lock:
            registrations = list(self._registrations.values())
            self._registrations.clear()
            self._models.clear()
        for registration in registrations:
            registration.remove()


_cache: Optional[PermissionCache] = None
_cache_lock = threading.Lock()


def get_permission_cache(store: DocumentStore) -> PermissionCache:
    """Process-wide cache bound to the active store"""
    global _cache
    with _cache_lock:
        if _cache is None or _cache.store is not store:
            if _cache is not None:
                _cache.clear()
            _cache = PermissionCache(store, settings.permission_cache_max_groups)
        return _cache
