"""In-memory registry of connections.

Every write goes through a single lock, so concurrent callers never merge
into the same connection at once. Connections are deep-copied on the way
in and out; callers never hold a reference to stored state.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Dict, Iterable, List, Tuple

from .connection import Connection, ConnectionListStub, ConnectionPatch
from .errors import ConnectionNotFoundError, MeshLinkError
from .identity import DEFAULT_CLOCK, Clock

logger = logging.getLogger(__name__)


class ConnectionStore:
    def __init__(self, *, clock: Clock | None = None) -> None:
        self.clock = clock or DEFAULT_CLOCK
        self.index = 0
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()

    def _bump_index(self) -> int:
        self.index += 1
        return self.index

    def _lookup(self, connection_id: str) -> Connection:
        try:
            return self._connections[connection_id]
        except KeyError as exc:
            raise ConnectionNotFoundError(connection_id) from exc

    def _prepare(self, connection: Connection) -> None:
        try:
            connection.validate()
        except MeshLinkError as exc:
            logger.warning("[store] rejected connection %s: %s", connection.id, exc)
            raise
        connection.initialize_peer_settings()

    def upsert(self, connection: Connection) -> Tuple[Connection, int]:
        """Validate and store *connection*; returns the stored copy and write index."""

        if not connection.id:
            raise MeshLinkError("connection id is required")
        candidate = copy.deepcopy(connection)
        self._prepare(candidate)

        with self._lock:
            now = self.clock.now()
            existing = self._connections.get(candidate.id)
            if existing is not None:
                candidate.created_at = existing.created_at
            elif candidate.created_at is None:
                candidate.created_at = now
            candidate.updated_at = now
            self._connections[candidate.id] = candidate
            index = self._bump_index()
            result = copy.deepcopy(candidate)

        action = "updated" if existing is not None else "created"
        logger.info("[store] %s connection %s (index=%d)", action, candidate.id, index)
        return result, index

    def patch(self, connection_id: str, patch: ConnectionPatch | Connection) -> Tuple[Connection, int]:
        """Merge *patch* into a stored connection. Invalid results leave it untouched."""

        with self._lock:
            merged = self._lookup(connection_id).merge(patch)
            self._prepare(merged)
            merged.updated_at = self.clock.now()
            self._connections[connection_id] = merged
            index = self._bump_index()
            result = copy.deepcopy(merged)

        logger.info("[store] patched connection %s (index=%d)", connection_id, index)
        return result, index

    def allow_ip(self, connection_id: str, ip: str) -> Tuple[Connection, int]:
        with self._lock:
            updated = copy.deepcopy(self._lookup(connection_id))
            updated.allow_ip_bidirectional(ip)
            updated.updated_at = self.clock.now()
            self._connections[connection_id] = updated
            index = self._bump_index()
            result = copy.deepcopy(updated)

        logger.info("[store] allowed %s on connection %s (index=%d)", ip, connection_id, index)
        return result, index

    def get(self, connection_id: str) -> Connection:
        with self._lock:
            return copy.deepcopy(self._lookup(connection_id))

    def delete(self, connection_ids: Iterable[str]) -> int:
        """Delete every id or none of them."""

        ids = list(dict.fromkeys(connection_ids))
        with self._lock:
            for connection_id in ids:
                self._lookup(connection_id)
            for connection_id in ids:
                del self._connections[connection_id]
            index = self._bump_index()

        logger.info("[store] deleted %d connection(s) (index=%d)", len(ids), index)
        return index

    def list(
        self,
        *,
        interface_id: str | None = None,
        node_id: str | None = None,
        network_id: str | None = None,
        prefix: str | None = None,
    ) -> List[ConnectionListStub]:
        """Return stubs matching every given filter, ordered by id."""

        with self._lock:
            connections = sorted(self._connections.values(), key=lambda conn: conn.id)
            stubs = []
            for conn in connections:
                if prefix and not conn.id.startswith(prefix):
                    continue
                if network_id and conn.network_id != network_id:
                    continue
                if interface_id and not conn.connects_interface(interface_id):
                    continue
                if node_id and conn.peer_settings_by_node_id(node_id) is None:
                    continue
                stubs.append(conn.stub())
        return stubs

    def __len__(self) -> int:
        return len(self._connections)

    def reset(self) -> None:
        """Drop every connection. Intended for tests."""

        with self._lock:
            self._connections.clear()
            self.index = 0


__all__ = ["ConnectionStore"]
