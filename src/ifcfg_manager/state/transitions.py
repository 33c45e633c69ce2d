"""Closed set of transitions accepted by the network store.

Each transition is a frozen dataclass; the reducer dispatches on the class.
``kind`` is the stable tag used in logs.
"""
from dataclasses import dataclass
from typing import Any, ClassVar, Mapping, Optional, Sequence, Union

from ..model.factory import interface_name
from ..model.schema import Connection, Route


@dataclass(frozen=True)
class SetInterfaces:
    """Replace all interfaces with freshly discovered ones."""
    payloads: Sequence[Mapping[str, Any]]
    kind: ClassVar[str] = "set_interfaces"


@dataclass(frozen=True)
class SetConnections:
    """Replace all connections with freshly discovered ones."""
    payloads: Sequence[Mapping[str, Any]]
    kind: ClassVar[str] = "set_connections"


@dataclass(frozen=True)
class SetRoutes:
    """Replace all routes with freshly discovered ones."""
    payloads: Sequence[Mapping[str, Any]]
    kind: ClassVar[str] = "set_routes"


@dataclass(frozen=True)
class UpdateRoutes:
    """Replace all routes with already built records."""
    routes: Sequence[Route]
    kind: ClassVar[str] = "update_routes"


@dataclass(frozen=True)
class AddConnection:
    connection: Connection
    kind: ClassVar[str] = "add_connection"


@dataclass(frozen=True)
class UpdateConnection:
    connection: Connection
    kind: ClassVar[str] = "update_connection"


@dataclass(frozen=True)
class DeleteConnection:
    connection: Connection
    kind: ClassVar[str] = "delete_connection"


@dataclass(frozen=True)
class UpdateInterface:
    """Fresh data for an interface, matched by name.

    ``payload`` is the raw notification; only the fields it carries are
    merged onto the stored interface.
    """
    payload: Mapping[str, Any]
    kind: ClassVar[str] = "update_interface"

    @property
    def name(self) -> Optional[str]:
        return interface_name(self.payload)


@dataclass(frozen=True)
class ConnectionFailure:
    """A backend call for ``connection`` failed with ``error``."""
    connection: Connection
    error: Union[BaseException, str]
    kind: ClassVar[str] = "connection_error"

    @property
    def message(self) -> str:
        return str(self.error)


Transition = Union[
    SetInterfaces,
    SetConnections,
    SetRoutes,
    UpdateRoutes,
    AddConnection,
    UpdateConnection,
    DeleteConnection,
    UpdateInterface,
    ConnectionFailure,
]
