from datetime import datetime, timezone

import pytest

from meshlink.connection import Connection, PeerPair, PeerSettings, RoutingRules
from meshlink.identity import FixedClock, SequentialIDSource

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_connection(
    first=("node-b", "iface-b", ["10.0.0.0/24"]),
    second=("node-a", "iface-a", ["10.1.0.0/24"]),
    keepalive=None,
) -> Connection:
    """Helper to build a populated connection with deterministic ids."""

    def _peer(entry):
        node_id, interface_id, allowed = entry
        rules = RoutingRules(allowed_ips=list(allowed)) if allowed is not None else None
        return PeerSettings(node_id=node_id, interface_id=interface_id, routing_rules=rules)

    conn = Connection.new(
        "net-1",
        id_source=SequentialIDSource("conn"),
        clock=FixedClock(EPOCH),
    )
    conn.peer_settings = PeerPair(first=_peer(first), second=_peer(second))
    conn.persistent_keepalive = keepalive
    return conn


@pytest.fixture
def connection() -> Connection:
    return make_connection()
