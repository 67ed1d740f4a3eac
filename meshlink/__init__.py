# Control-plane model for point-to-point links in a mesh overlay.
#
# Provides:
#  - Connection / PeerSettings / RoutingRules with validation and patch merging
#  - pydantic request/response envelopes
#  - an in-memory store and a FastAPI app on top of it
#
# See meshlink/connection.py for the core model.
from .connection import (
    Connection,
    ConnectionListStub,
    ConnectionPatch,
    PeerPair,
    PeerSettings,
    RoutingRules,
)
from .errors import (
    ConnectionNotFoundError,
    ConnectionValidationError,
    IncompletePeerSettingsError,
    MeshLinkError,
    UninitializedRoutingRulesError,
)

__all__ = [
    "Connection",
    "ConnectionListStub",
    "ConnectionPatch",
    "PeerPair",
    "PeerSettings",
    "RoutingRules",
    "ConnectionNotFoundError",
    "ConnectionValidationError",
    "IncompletePeerSettingsError",
    "MeshLinkError",
    "UninitializedRoutingRulesError",
]
