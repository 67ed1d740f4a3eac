import copy

import pytest

from meshlink.connection import Connection, ConnectionPatch, PeerSettings, RoutingRules
from meshlink.errors import ConnectionValidationError

from tests.conftest import make_connection


def test_empty_patch_is_identity(connection):
    merged = connection.merge(ConnectionPatch())
    assert merged == connection
    assert merged is not connection


def test_keepalive_overwrite_and_retain():
    conn = make_connection(keepalive=5)
    assert conn.merge(ConnectionPatch(persistent_keepalive=10)).persistent_keepalive == 10
    assert conn.merge(ConnectionPatch(persistent_keepalive=None)).persistent_keepalive == 5
    assert conn.persistent_keepalive == 5


def test_nested_allowed_ips_are_replaced_not_unioned(connection):
    patch = ConnectionPatch(
        peer_settings=[
            PeerSettings(interface_id="iface-b", routing_rules=RoutingRules(allowed_ips=["10.0.0.0/8"])),
        ]
    )
    merged = connection.merge(patch)
    assert merged.peer_settings.first.routing_rules.allowed_ips == ["10.0.0.0/8"]
    assert merged.peer_settings.second.routing_rules.allowed_ips == ["10.1.0.0/24"]
    assert connection.peer_settings.first.routing_rules.allowed_ips == ["10.0.0.0/24"]


def test_peer_fields_only_change_when_present(connection):
    patch = ConnectionPatch(peer_settings=[PeerSettings(node_id="node-x", interface_id="iface-a")])
    merged = connection.merge(patch)
    assert merged.peer_settings.second.node_id == "node-x"
    assert merged.peer_settings.second.routing_rules.allowed_ips == ["10.1.0.0/24"]
    assert merged.peer_settings.first == connection.peer_settings.first


def test_nil_allowed_ips_means_no_change(connection):
    patch = ConnectionPatch(peer_settings=[PeerSettings(interface_id="iface-a", routing_rules=RoutingRules())])
    merged = connection.merge(patch)
    assert merged.peer_settings.second.routing_rules.allowed_ips == ["10.1.0.0/24"]


def test_unmatched_patch_entries_are_ignored(connection):
    patch = ConnectionPatch(
        peer_settings=[PeerSettings(node_id="node-z", interface_id="iface-z", routing_rules=RoutingRules(["0.0.0.0/0"]))]
    )
    merged = connection.merge(patch)
    assert merged == connection
    assert len(merged.peer_settings) == 2


def test_patch_fills_empty_receiver():
    conn = Connection(id="c-1", network_id="net-1")
    peers = [PeerSettings(interface_id="iface-a"), PeerSettings(interface_id="iface-b")]
    merged = conn.merge(ConnectionPatch(peer_settings=peers))
    assert merged.connected_interface_ids() == ("iface-a", "iface-b")
    assert merged.peer_settings.first is not peers[0]
    assert conn.peer_settings is None


def test_patch_with_wrong_count_into_empty_receiver_raises():
    conn = Connection(id="c-1")
    with pytest.raises(ConnectionValidationError):
        conn.merge(ConnectionPatch(peer_settings=[PeerSettings(interface_id="iface-a")]))
    assert conn.peer_settings is None


def test_receiver_without_rules_adopts_patch_rules():
    conn = make_connection(first=("node-b", "iface-b", None))
    rules = RoutingRules(allowed_ips=["192.168.0.0/16"])
    merged = conn.merge(ConnectionPatch(peer_settings=[PeerSettings(interface_id="iface-b", routing_rules=rules)]))
    assert merged.peer_settings.first.routing_rules == rules
    assert merged.peer_settings.first.routing_rules is not rules


def test_merge_does_not_alias_receiver_or_patch(connection):
    before = copy.deepcopy(connection)
    patch_rules = RoutingRules(allowed_ips=["10.9.0.0/16"])
    merged = connection.merge(
        ConnectionPatch(peer_settings=[PeerSettings(interface_id="iface-a", routing_rules=patch_rules)])
    )

    merged.allow_ip_bidirectional("1.2.3.0/24")
    assert connection == before
    assert patch_rules.allowed_ips == ["10.9.0.0/16"]


def test_identity_fields_come_from_receiver(connection):
    other = Connection(id="other", network_id="net-2", persistent_keepalive=30)
    merged = connection.merge(other)
    assert merged.id == connection.id
    assert merged.network_id == "net-1"
    assert merged.created_at == connection.created_at
    assert merged.persistent_keepalive == 30
    assert merged.peer_settings == connection.peer_settings


def test_merge_accepts_full_connection_as_patch(connection):
    update = make_connection(first=("node-b", "iface-b", ["172.16.0.0/12"]), second=("node-a", "iface-a", []))
    merged = connection.merge(update)
    assert merged.peer_settings.first.routing_rules.allowed_ips == ["172.16.0.0/12"]
    assert merged.peer_settings.second.routing_rules.allowed_ips == []
