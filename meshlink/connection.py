"""Control-plane model of a link between two interfaces in the mesh."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from .errors import (
    ERR_INTERFACE_COUNT,
    ERR_SELF_LOOP,
    ConnectionValidationError,
    IncompletePeerSettingsError,
    UninitializedRoutingRulesError,
)
from .identity import DEFAULT_CLOCK, DEFAULT_ID_SOURCE, Clock, IDSource


def _copy_list(values: List[str] | None) -> List[str] | None:
    return list(values) if values is not None else None


def _format_ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_ts(value: object) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ValueError(f"Invalid timestamp: {value!r}") from exc


@dataclass
class RoutingRules:
    """IP ranges routed/accepted on one side of a connection.

    If ``allowed_ips`` is ``["192.0.2.3/32", "192.168.1.0/24"]`` the peer
    accepts traffic for itself and for every host on its local network.
    ``None`` means "unset", which a patch reads as "leave unchanged".
    """

    allowed_ips: List[str] | None = None

    def merge(self, patch: RoutingRules) -> RoutingRules:
        """Return new rules where a non-``None`` patch list replaces ours wholesale."""

        allowed = patch.allowed_ips if patch.allowed_ips is not None else self.allowed_ips
        return RoutingRules(allowed_ips=_copy_list(allowed))

    def copy(self) -> RoutingRules:
        return RoutingRules(allowed_ips=_copy_list(self.allowed_ips))

    def to_dict(self) -> Dict[str, Any]:
        return {"allowed_ips": _copy_list(self.allowed_ips)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RoutingRules:
        return cls(allowed_ips=_copy_list(data.get("allowed_ips")))


@dataclass
class PeerSettings:
    """Configuration applied to one of the two connected interfaces."""

    node_id: str = ""
    interface_id: str = ""
    routing_rules: RoutingRules | None = None

    def merge(self, patch: PeerSettings) -> PeerSettings:
        """Field-wise merge; empty ids and ``None`` rules leave ours untouched."""

        if patch.routing_rules is None:
            rules = self.routing_rules.copy() if self.routing_rules is not None else None
        elif self.routing_rules is None:
            rules = patch.routing_rules.copy()
        else:
            rules = self.routing_rules.merge(patch.routing_rules)
        return PeerSettings(
            node_id=patch.node_id or self.node_id,
            interface_id=patch.interface_id or self.interface_id,
            routing_rules=rules,
        )

    def copy(self) -> PeerSettings:
        rules = self.routing_rules.copy() if self.routing_rules is not None else None
        return PeerSettings(node_id=self.node_id, interface_id=self.interface_id, routing_rules=rules)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "interface_id": self.interface_id,
            "routing_rules": self.routing_rules.to_dict() if self.routing_rules is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PeerSettings:
        rules = data.get("routing_rules")
        return cls(
            node_id=data.get("node_id") or "",
            interface_id=data.get("interface_id") or "",
            routing_rules=RoutingRules.from_dict(rules) if rules is not None else None,
        )


@dataclass
class PeerPair:
    """The two sides of a connection. Slot order is storage order only."""

    first: PeerSettings
    second: PeerSettings

    @classmethod
    def from_sequence(cls, peers: Sequence[PeerSettings]) -> PeerPair:
        if len(peers) != 2:
            raise ConnectionValidationError(ERR_INTERFACE_COUNT)
        first, second = peers
        return cls(first=first, second=second)

    def __iter__(self) -> Iterator[PeerSettings]:
        yield self.first
        yield self.second

    def __len__(self) -> int:
        return 2

    def copy(self) -> PeerPair:
        return PeerPair(first=self.first.copy(), second=self.second.copy())


@dataclass
class ConnectionPatch:
    """Partial update for :meth:`Connection.merge`. ``None`` fields mean "no change"."""

    peer_settings: List[PeerSettings] | None = None
    persistent_keepalive: int | None = None

    @classmethod
    def from_connection(cls, connection: Connection) -> ConnectionPatch:
        peers = list(connection.peer_settings) if connection.peer_settings is not None else None
        return cls(peer_settings=peers, persistent_keepalive=connection.persistent_keepalive)


@dataclass
class ConnectionListStub:
    """Flattened, read-only view of a connection used by list endpoints."""

    id: str
    network_id: str
    node_ids: List[str] = field(default_factory=list)
    peers: List[str] = field(default_factory=list)
    peer_settings: List[PeerSettings] = field(default_factory=list)
    persistent_keepalive: int | None = None
    # Owned by the telemetry collector; callers fill it in after projection.
    bytes_transferred: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "network_id": self.network_id,
            "node_ids": list(self.node_ids),
            "peers": list(self.peers),
            "peer_settings": [peer.to_dict() for peer in self.peer_settings],
            "persistent_keepalive": self.persistent_keepalive,
            "bytes_transferred": self.bytes_transferred,
            "created_at": _format_ts(self.created_at),
            "updated_at": _format_ts(self.updated_at),
        }


@dataclass
class Connection:
    """A bidirectional link between exactly two interfaces of a mesh network.

    A connection is only trustworthy once :meth:`validate` has passed. If
    the connection goes from a NAT-ed peer to a public one, the node behind
    the NAT must send keepalives every ``persistent_keepalive`` seconds to
    hold the mapping open. ``None`` means no keepalive at all.
    """

    id: str = ""
    network_id: str = ""
    peer_settings: PeerPair | None = None
    persistent_keepalive: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def new(
        cls,
        network_id: str = "",
        *,
        id_source: IDSource | None = None,
        clock: Clock | None = None,
    ) -> Connection:
        """Create an empty connection with a fresh id and creation timestamp."""

        id_source = id_source or DEFAULT_ID_SOURCE
        clock = clock or DEFAULT_CLOCK
        return cls(id=id_source.generate(), network_id=network_id, created_at=clock.now())

    def _require_peers(self) -> PeerPair:
        if self.peer_settings is None:
            raise IncompletePeerSettingsError()
        return self.peer_settings

    def validate(self) -> None:
        """Raise :class:`ConnectionValidationError` unless the topology is sound."""

        if self.peer_settings is None:
            raise ConnectionValidationError(ERR_INTERFACE_COUNT)
        first, second = self.connected_interface_ids()
        if first == second:
            raise ConnectionValidationError(ERR_SELF_LOOP)

    def connected_interface_ids(self) -> Tuple[str, str]:
        """Interface ids of both sides, sorted ascending."""

        peers = self._require_peers()
        first, second = sorted((peers.first.interface_id, peers.second.interface_id))
        return first, second

    def connected_node_ids(self) -> Tuple[str, str]:
        """Node ids of both sides, sorted ascending."""

        peers = self._require_peers()
        first, second = sorted((peers.first.node_id, peers.second.node_id))
        return first, second

    def peer_settings_by_node_id(self, node_id: str) -> PeerSettings | None:
        peers = self._require_peers()
        if peers.first.node_id == node_id:
            return peers.first
        if peers.second.node_id == node_id:
            return peers.second
        return None

    def peer_settings_by_interface_id(self, interface_id: str) -> PeerSettings | None:
        peers = self._require_peers()
        if peers.first.interface_id == interface_id:
            return peers.first
        if peers.second.interface_id == interface_id:
            return peers.second
        return None

    def other_peer_settings_by_interface_id(self, interface_id: str) -> PeerSettings | None:
        """Given one connected interface, return the settings of the far end."""

        peers = self._require_peers()
        if peers.first.interface_id == interface_id:
            return peers.second
        if peers.second.interface_id == interface_id:
            return peers.first
        return None

    def connects_interface(self, interface_id: str) -> bool:
        peers = self._require_peers()
        return interface_id in (peers.first.interface_id, peers.second.interface_id)

    def connects_interfaces(self, a: str, b: str) -> bool:
        # Both ids may bind to the same slot, so (x, x) is True for a connected x.
        return self.connects_interface(a) and self.connects_interface(b)

    def initialize_peer_settings(self) -> None:
        """Give every side empty routing rules if it has none. Idempotent."""

        if self.peer_settings is None:
            return
        for peer in self.peer_settings:
            if peer.routing_rules is None:
                peer.routing_rules = RoutingRules(allowed_ips=[])

    def merge(self, patch: ConnectionPatch | Connection) -> Connection:
        """Return a new connection with the fields present in *patch* applied.

        Peer entries are matched to our slots by interface id and merged
        field by field. Entries matching neither slot are dropped. The
        result shares no mutable state with ``self`` or *patch*.
        """

        if isinstance(patch, Connection):
            patch = ConnectionPatch.from_connection(patch)

        peers = self.peer_settings
        if patch.peer_settings is not None:
            if peers is None:
                peers = PeerPair.from_sequence([peer.copy() for peer in patch.peer_settings])
            else:
                first, second = peers.first.copy(), peers.second.copy()
                for entry in patch.peer_settings:
                    if first.interface_id == entry.interface_id:
                        first = first.merge(entry)
                    elif second.interface_id == entry.interface_id:
                        second = second.merge(entry)
                peers = PeerPair(first=first, second=second)
        elif peers is not None:
            peers = peers.copy()

        keepalive = self.persistent_keepalive
        if patch.persistent_keepalive is not None:
            keepalive = patch.persistent_keepalive

        return Connection(
            id=self.id,
            network_id=self.network_id,
            peer_settings=peers,
            persistent_keepalive=keepalive,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def allow_ip_bidirectional(self, ip: str) -> None:
        """Append *ip* to the allowed ranges of both sides, in place."""

        peers = self._require_peers()
        for peer in peers:
            if peer.routing_rules is None:
                raise UninitializedRoutingRulesError(peer.interface_id)
        for peer in peers:
            rules = peer.routing_rules
            if rules.allowed_ips is None:
                rules.allowed_ips = []
            rules.allowed_ips.append(ip)

    def stub(self) -> ConnectionListStub:
        peers = list(self.peer_settings) if self.peer_settings is not None else []
        return ConnectionListStub(
            id=self.id,
            network_id=self.network_id,
            node_ids=[peer.node_id for peer in peers],
            peers=[peer.interface_id for peer in peers],
            peer_settings=[peer.copy() for peer in peers],
            persistent_keepalive=self.persistent_keepalive,
            bytes_transferred=0,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        peers = [peer.to_dict() for peer in self.peer_settings] if self.peer_settings is not None else None
        return {
            "id": self.id,
            "network_id": self.network_id,
            "peer_settings": peers,
            "persistent_keepalive": self.persistent_keepalive,
            "created_at": _format_ts(self.created_at),
            "updated_at": _format_ts(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Connection:
        raw_peers = data.get("peer_settings")
        peers = None
        if raw_peers is not None:
            peers = PeerPair.from_sequence([PeerSettings.from_dict(item) for item in raw_peers])
        return cls(
            id=data.get("id") or "",
            network_id=data.get("network_id") or "",
            peer_settings=peers,
            persistent_keepalive=data.get("persistent_keepalive"),
            created_at=_parse_ts(data.get("created_at")),
            updated_at=_parse_ts(data.get("updated_at")),
        )


__all__ = [
    "RoutingRules",
    "PeerSettings",
    "PeerPair",
    "ConnectionPatch",
    "ConnectionListStub",
    "Connection",
]
