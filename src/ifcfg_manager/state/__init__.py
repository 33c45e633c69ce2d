"""Network state store and its transitions."""
from .store import NetworkStore, Listener
from .reducer import network_reducer, initial_state
from .transitions import (
    AddConnection,
    ConnectionFailure,
    DeleteConnection,
    SetConnections,
    SetInterfaces,
    SetRoutes,
    Transition,
    UpdateConnection,
    UpdateInterface,
    UpdateRoutes,
)

__all__ = [
    "NetworkStore",
    "Listener",
    "network_reducer",
    "initial_state",
    "AddConnection",
    "ConnectionFailure",
    "DeleteConnection",
    "SetConnections",
    "SetInterfaces",
    "SetRoutes",
    "Transition",
    "UpdateConnection",
    "UpdateInterface",
    "UpdateRoutes",
]
