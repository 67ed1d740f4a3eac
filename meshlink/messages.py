"""Request/response envelopes carrying connections across the API boundary."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from .connection import (
    Connection,
    ConnectionListStub,
    ConnectionPatch,
    PeerPair,
    PeerSettings,
    RoutingRules,
)


class QueryOptions(BaseModel):
    """Paging and id-prefix options for list queries."""

    prefix: str | None = None
    per_page: int | None = Field(default=None, gt=0)
    # Id of the first connection to return; echoed back by the previous page.
    next_token: str | None = None


class WriteRequest(BaseModel):
    """Options common to every write request. None are defined yet."""


class Response(BaseModel):
    """Metadata attached to every response."""

    last_index: int = 0
    known_leader: bool = True


class RoutingRulesModel(BaseModel):
    allowed_ips: List[str] | None = None

    @classmethod
    def from_domain(cls, rules: RoutingRules) -> RoutingRulesModel:
        return cls(allowed_ips=rules.allowed_ips)

    def to_domain(self) -> RoutingRules:
        allowed = list(self.allowed_ips) if self.allowed_ips is not None else None
        return RoutingRules(allowed_ips=allowed)


class PeerSettingsModel(BaseModel):
    node_id: str = ""
    interface_id: str = ""
    routing_rules: RoutingRulesModel | None = None

    @classmethod
    def from_domain(cls, peer: PeerSettings) -> PeerSettingsModel:
        rules = RoutingRulesModel.from_domain(peer.routing_rules) if peer.routing_rules is not None else None
        return cls(node_id=peer.node_id, interface_id=peer.interface_id, routing_rules=rules)

    def to_domain(self) -> PeerSettings:
        rules = self.routing_rules.to_domain() if self.routing_rules is not None else None
        return PeerSettings(node_id=self.node_id, interface_id=self.interface_id, routing_rules=rules)


class ConnectionModel(BaseModel):
    id: str = ""
    network_id: str = ""
    peer_settings: List[PeerSettingsModel] | None = None
    persistent_keepalive: int | None = Field(default=None, ge=0, description="Keepalive interval in seconds")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, connection: Connection) -> ConnectionModel:
        peers = None
        if connection.peer_settings is not None:
            peers = [PeerSettingsModel.from_domain(peer) for peer in connection.peer_settings]
        return cls(
            id=connection.id,
            network_id=connection.network_id,
            peer_settings=peers,
            persistent_keepalive=connection.persistent_keepalive,
            created_at=connection.created_at,
            updated_at=connection.updated_at,
        )

    def to_domain(self) -> Connection:
        """Build a :class:`Connection`; raises if peer settings are not a pair."""

        peers = None
        if self.peer_settings is not None:
            peers = PeerPair.from_sequence([peer.to_domain() for peer in self.peer_settings])
        return Connection(
            id=self.id,
            network_id=self.network_id,
            peer_settings=peers,
            persistent_keepalive=self.persistent_keepalive,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_patch(self) -> ConnectionPatch:
        peers = None
        if self.peer_settings is not None:
            peers = [peer.to_domain() for peer in self.peer_settings]
        return ConnectionPatch(peer_settings=peers, persistent_keepalive=self.persistent_keepalive)


class ConnectionListStubModel(BaseModel):
    id: str
    network_id: str
    node_ids: List[str] = Field(default_factory=list)
    peers: List[str] = Field(default_factory=list)
    peer_settings: List[PeerSettingsModel] = Field(default_factory=list)
    persistent_keepalive: int | None = None
    bytes_transferred: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, stub: ConnectionListStub) -> ConnectionListStubModel:
        return cls(
            id=stub.id,
            network_id=stub.network_id,
            node_ids=stub.node_ids,
            peers=stub.peers,
            peer_settings=[PeerSettingsModel.from_domain(peer) for peer in stub.peer_settings],
            persistent_keepalive=stub.persistent_keepalive,
            bytes_transferred=stub.bytes_transferred,
            created_at=stub.created_at,
            updated_at=stub.updated_at,
        )


class ConnectionSpecificRequest(BaseModel):
    connection_id: str
    query_options: QueryOptions = Field(default_factory=QueryOptions)


class SingleConnectionResponse(BaseModel):
    connection: ConnectionModel
    meta: Response = Field(default_factory=Response)


class ConnectionUpsertRequest(BaseModel):
    connection: ConnectionModel
    write_options: WriteRequest = Field(default_factory=WriteRequest)


class ConnectionDeleteRequest(BaseModel):
    connection_ids: List[str] = Field(min_length=1)
    write_options: WriteRequest = Field(default_factory=WriteRequest)


class ConnectionListRequest(BaseModel):
    interface_id: str | None = None
    node_id: str | None = None
    network_id: str | None = None
    query_options: QueryOptions = Field(default_factory=QueryOptions)


class ConnectionListResponse(BaseModel):
    items: List[ConnectionListStubModel] = Field(default_factory=list)
    next_token: str | None = None
    meta: Response = Field(default_factory=Response)


class AllowIPRequest(BaseModel):
    ip: str = Field(min_length=1, description="IP range allowed on both ends, e.g. 10.1.0.0/24")
    write_options: WriteRequest = Field(default_factory=WriteRequest)


__all__ = [
    "QueryOptions",
    "WriteRequest",
    "Response",
    "RoutingRulesModel",
    "PeerSettingsModel",
    "ConnectionModel",
    "ConnectionListStubModel",
    "ConnectionSpecificRequest",
    "SingleConnectionResponse",
    "ConnectionUpsertRequest",
    "ConnectionDeleteRequest",
    "ConnectionListRequest",
    "ConnectionListResponse",
    "AllowIPRequest",
]
