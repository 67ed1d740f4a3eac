"""Exception types raised by the connection model and its store."""

from __future__ import annotations

ERR_INTERFACE_COUNT = "a connection must specify exactly two interfaces"
ERR_SELF_LOOP = "can't connect an interface to itself"


class MeshLinkError(ValueError):
    """Base class for every error surfaced by meshlink."""


class ConnectionValidationError(MeshLinkError):
    """The connection topology is invalid (wrong interface count, self-loop)."""


class IncompletePeerSettingsError(MeshLinkError):
    """A lookup was made on a connection that has no peer settings yet."""

    def __init__(self, message: str = "connection has no peer settings") -> None:
        super().__init__(message)


class UninitializedRoutingRulesError(MeshLinkError):
    """Routing rules must be initialized before they can be mutated."""

    def __init__(self, interface_id: str) -> None:
        super().__init__(f"routing rules for interface {interface_id!r} are not initialized")
        self.interface_id = interface_id


class ConnectionNotFoundError(MeshLinkError, KeyError):
    """No connection is stored under the requested identifier."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(f"connection {connection_id!r} not found")
        self.connection_id = connection_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


__all__ = [
    "ERR_INTERFACE_COUNT",
    "ERR_SELF_LOOP",
    "MeshLinkError",
    "ConnectionValidationError",
    "IncompletePeerSettingsError",
    "UninitializedRoutingRulesError",
    "ConnectionNotFoundError",
]
