"""Coordinates user intents between the network store and the backend.

Every configuration change follows the same workflow:
1. Build the new record through the model factory
2. Dispatch an optimistic transition so the UI reflects the change at once
3. Call the backend
4. On failure, dispatch ConnectionFailure so the interface shows the error

Backends report each successful activation as an interface notification
carrying ``status: idle``, which confirms the change in the store.
"""
import asyncio
import dataclasses
import logging
import weakref
from typing import Any, Callable, Mapping, Optional, Union

from ..backend.base import NetworkBackend
from ..model.factory import (
    create_connection,
    create_route,
    merge_connection,
)
from ..model.schema import Connection, NetworkState, Route
from ..state.store import Listener, NetworkStore
from ..state.transitions import (
    AddConnection,
    ConnectionFailure,
    DeleteConnection,
    SetConnections,
    SetInterfaces,
    SetRoutes,
    UpdateConnection,
    UpdateInterface,
    UpdateRoutes,
)
from ..utils.logging_config import timed_section

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """
    Applies connection changes optimistically and reconciles with the backend.

    Operations on the same connection name run one at a time, in the order
    they were requested. Operations on different names interleave.

    Usage:
        coordinator = SyncCoordinator(NetworkStore(), WickedBackend(settings))
        await coordinator.refresh()
        conn = await coordinator.add_connection({"name": "br0", "type": "br"})
    """

    def __init__(self, store: NetworkStore, backend: NetworkBackend):
        self.store = store
        self.backend = backend
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._routes_lock = asyncio.Lock()
        self._unsubscribers: list[Callable[[], None]] = []

    def _lock_for(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[name] = lock
        return lock

    def _fail(self, operation: str, connection: Connection, error: Exception) -> None:
        logger.error(f"{operation} failed for {connection.name}: {error}")
        self.store.dispatch(ConnectionFailure(connection, error))

    # === UI surface ===

    def get_state(self) -> NetworkState:
        return self.store.get_state()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    # === Discovery ===

    async def fetch_interfaces(self) -> None:
        payloads = await self.backend.get_interfaces()
        self.store.dispatch(SetInterfaces(payloads))

    async def fetch_connections(self) -> None:
        payloads = await self.backend.get_connections()
        self.store.dispatch(SetConnections(payloads))

    async def fetch_routes(self) -> None:
        payloads = await self.backend.get_routes()
        self.store.dispatch(SetRoutes(payloads))

    async def refresh(self) -> None:
        """Reload interfaces, connections and routes from the backend."""
        async with timed_section("refresh"):
            await self.fetch_interfaces()
            await self.fetch_connections()
            await self.fetch_routes()

        state = self.store.get_state()
        logger.info(
            f"Loaded {len(state.interfaces)} interfaces, "
            f"{len(state.connections)} connections, {len(state.routes)} routes"
        )

    def listen_to_interface_changes(self) -> Callable[[], None]:
        """Forward backend interface notifications into the store.

        Returns:
            Function that stops listening
        """
        def on_change(payload: Mapping[str, Any]) -> None:
            self.store.dispatch(UpdateInterface(payload))

        unsubscribe = self.backend.on_interface_change(on_change)
        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    async def service_is_active(self) -> bool:
        try:
            return await self.backend.is_active()
        except Exception as e:
            logger.warning(f"Could not check backend service: {e}")
            return False

    # === Connections ===

    async def add_connection(self, attrs: Mapping[str, Any]) -> Connection:
        """Create a connection, persist it and bring it up."""
        connection = create_connection(attrs)

        async with self._lock_for(connection.name):
            logger.info(f"Adding connection {connection.name} ({connection.type.value})")
            self.store.dispatch(AddConnection(connection))
            try:
                async with timed_section("add_connection", target=connection.name):
                    await self.backend.add_connection(connection)
                    if not connection.exists:
                        connection = dataclasses.replace(connection, exists=True)
                        self.store.dispatch(UpdateConnection(connection))
                    await self.backend.reload_connection(connection.name)
            except Exception as e:
                self._fail("add_connection", connection, e)

        return connection

    async def update_connection(
        self,
        connection: Connection,
        changes: Union[Mapping[str, Any], Connection],
    ) -> Connection:
        """Apply ``changes`` to ``connection``, persist and reload it."""
        updated = merge_connection(connection, changes)

        async with self._lock_for(updated.name):
            logger.info(f"Updating connection {updated.name}")
            self.store.dispatch(UpdateConnection(updated))
            try:
                async with timed_section("update_connection", target=updated.name):
                    await self.backend.update_connection(updated)
                    await self.backend.reload_connection(updated.name)
            except Exception as e:
                self._fail("update_connection", updated, e)

        return updated

    async def delete_connection(self, connection: Connection) -> Connection:
        """Remove the persisted connection and take the interface down."""
        async with self._lock_for(connection.name):
            logger.info(f"Deleting connection {connection.name}")
            self.store.dispatch(DeleteConnection(connection))
            try:
                async with timed_section("delete_connection", target=connection.name):
                    await self.backend.remove_connection(connection)
                    await self.backend.set_down(connection.name)
            except Exception as e:
                self._fail("delete_connection", connection, e)

        return connection

    async def change_connection_state(self, connection: Connection, set_up: bool) -> Connection:
        """Bring the interface of ``connection`` up or down.

        There is no optimistic transition; the interface notification
        reports the new link state.
        """
        operation = "set_up" if set_up else "set_down"

        async with self._lock_for(connection.name):
            logger.info(f"{operation} {connection.name}")
            try:
                async with timed_section(operation, target=connection.name):
                    if set_up:
                        await self.backend.set_up(connection.name)
                    else:
                        await self.backend.set_down(connection.name)
            except Exception as e:
                self._fail(operation, connection, e)

        return connection

    # === Routes ===

    def _routes(self) -> list[Route]:
        return list(self.store.get_state().routes.values())

    async def _save_routes(self, routes: list[Route]) -> None:
        self.store.dispatch(UpdateRoutes(routes))
        try:
            async with timed_section("update_routes", routes=len(routes)):
                await self.backend.update_routes(routes)
        except Exception as e:
            logger.error(f"Failed to save routes: {e}")
            try:
                await self.fetch_routes()
            except Exception as e:
                logger.error(f"Failed to reload routes after save error: {e}")

    async def add_route(self, attrs: Mapping[str, Any]) -> Route:
        route = create_route(attrs)
        async with self._routes_lock:
            await self._save_routes(self._routes() + [route])
        return route

    async def update_route(self, route: Route, changes: Mapping[str, Any]) -> Route:
        updated = create_route({**route.to_dict(), **changes, "id": route.id})
        async with self._routes_lock:
            routes = [updated if r.id == route.id else r for r in self._routes()]
            await self._save_routes(routes)
        return updated

    async def delete_route(self, route: Route) -> Route:
        async with self._routes_lock:
            await self._save_routes([r for r in self._routes() if r.id != route.id])
        return route

    async def close(self, close_backend: bool = True) -> None:
        """Stop listening for notifications and optionally close the backend."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        if close_backend:
            await self.backend.close()


def create_coordinator(
    backend: NetworkBackend,
    state: Optional[NetworkState] = None,
) -> SyncCoordinator:
    """Create a coordinator with a fresh store."""
    return SyncCoordinator(NetworkStore(state), backend)
