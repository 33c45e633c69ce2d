"""Pure reducer computing the next network state for a transition."""
import dataclasses
import logging
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from ..model.factory import (
    create_connection,
    create_interface,
    create_route,
    interface_changes,
)
from ..model.schema import Interface, InterfaceStatus, NetworkState
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

logger = logging.getLogger(__name__)


def initial_state() -> NetworkState:
    return NetworkState(
        interfaces=MappingProxyType({}),
        connections=MappingProxyType({}),
        routes=MappingProxyType({}),
    )


def _with(state: NetworkState, **collections: Mapping[str, Any]) -> NetworkState:
    frozen = {k: MappingProxyType(dict(v)) for k, v in collections.items()}
    return dataclasses.replace(state, **frozen)


def find_interface(interfaces: Mapping[str, Interface], name: str) -> Optional[Interface]:
    return next((i for i in interfaces.values() if i.name == name), None)


def _by_id(items) -> dict:
    return {item.id: item for item in items}


def _set_interfaces(state: NetworkState, t: SetInterfaces) -> NetworkState:
    return _with(state, interfaces=_by_id(create_interface(p) for p in t.payloads))


def _set_connections(state: NetworkState, t: SetConnections) -> NetworkState:
    return _with(state, connections=_by_id(create_connection(p) for p in t.payloads))


def _set_routes(state: NetworkState, t: SetRoutes) -> NetworkState:
    return _with(state, routes=_by_id(create_route(p) for p in t.payloads))


def _update_routes(state: NetworkState, t: UpdateRoutes) -> NetworkState:
    return _with(state, routes=_by_id(t.routes))


def _add_connection(state: NetworkState, t: AddConnection) -> NetworkState:
    conn = t.connection

    # Configuring an existing interface or adding a new (virtual) one?
    iface = find_interface(state.interfaces, conn.name)
    if iface is None:
        iface = create_interface({"name": conn.name, "type": conn.type.value})

    iface = dataclasses.replace(iface, status=InterfaceStatus.IN_PROGRESS)

    # At most one connection per name
    connections = {
        k: v for k, v in state.connections.items()
        if v.name != conn.name or k == conn.id
    }
    connections[conn.id] = conn

    return _with(
        state,
        interfaces={**state.interfaces, iface.id: iface},
        connections=connections,
    )


def _update_connection(state: NetworkState, t: UpdateConnection) -> NetworkState:
    conn = t.connection
    iface = find_interface(state.interfaces, conn.name)
    if iface is None:
        logger.warning(f"Ignoring update for connection '{conn.name}': no such interface")
        return state

    iface = dataclasses.replace(iface, status=InterfaceStatus.IN_PROGRESS, error=None)
    return _with(
        state,
        interfaces={**state.interfaces, iface.id: iface},
        connections={**state.connections, conn.id: conn},
    )


def _delete_connection(state: NetworkState, t: DeleteConnection) -> NetworkState:
    conn = t.connection
    connections = {k: v for k, v in state.connections.items() if k != conn.id}
    iface = find_interface(state.interfaces, conn.name)

    if iface is None:
        logger.warning(f"Deleted connection '{conn.name}' has no matching interface")
        return _with(state, connections=connections)

    interfaces = dict(state.interfaces)
    if conn.virtual:
        # Virtual interfaces go away with their connection
        del interfaces[iface.id]
    else:
        interfaces[iface.id] = dataclasses.replace(iface, status=InterfaceStatus.IN_PROGRESS)

    return _with(state, interfaces=interfaces, connections=connections)


def _update_interface(state: NetworkState, t: UpdateInterface) -> NetworkState:
    old = find_interface(state.interfaces, t.name)
    if old is None:
        logger.debug(f"Ignoring update for undiscovered interface '{t.name}'")
        return state

    iface = dataclasses.replace(old, **interface_changes(t.payload))
    return _with(state, interfaces={**state.interfaces, old.id: iface})


def _connection_failure(state: NetworkState, t: ConnectionFailure) -> NetworkState:
    iface = find_interface(state.interfaces, t.connection.name)
    if iface is None:
        logger.warning(
            f"Error for connection '{t.connection.name}' without interface: {t.message}"
        )
        return state

    iface = dataclasses.replace(iface, status=InterfaceStatus.ERROR, error=t.message)
    return _with(state, interfaces={**state.interfaces, iface.id: iface})


HANDLERS: dict[type, Callable[[NetworkState, Any], NetworkState]] = {
    SetInterfaces: _set_interfaces,
    SetConnections: _set_connections,
    SetRoutes: _set_routes,
    UpdateRoutes: _update_routes,
    AddConnection: _add_connection,
    UpdateConnection: _update_connection,
    DeleteConnection: _delete_connection,
    UpdateInterface: _update_interface,
    ConnectionFailure: _connection_failure,
}


def network_reducer(state: NetworkState, transition: Transition) -> NetworkState:
    """
    Compute the state after applying a transition.

    Unknown transitions leave the state untouched.
    """
    handler = HANDLERS.get(type(transition))
    if handler is None:
        logger.error(f"Unknown transition: {transition!r}")
        return state
    return handler(state, transition)
