"""Tests for the SyncCoordinator."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ifcfg_manager.backend import BackendError, NetworkBackend
from ifcfg_manager.model import InterfaceStatus, InterfaceType, Route
from ifcfg_manager.state import NetworkStore, SetConnections, SetInterfaces, SetRoutes
from ifcfg_manager.sync import SyncCoordinator, create_coordinator

ASYNC_METHODS = (
    "is_active",
    "get_interfaces",
    "get_connections",
    "get_routes",
    "add_connection",
    "update_connection",
    "remove_connection",
    "reload_connection",
    "set_up",
    "set_down",
    "update_routes",
    "close",
)


@pytest.fixture
def backend():
    """Backend double recording every call in order."""
    backend = MagicMock(spec=NetworkBackend)
    for name in ASYNC_METHODS:
        setattr(backend, name, AsyncMock(return_value=None))
    backend.get_interfaces.return_value = []
    backend.get_connections.return_value = []
    backend.get_routes.return_value = []
    return backend


@pytest.fixture
def store():
    store = NetworkStore()
    store.dispatch(SetInterfaces([{"name": "eth0"}, {"name": "eth1"}]))
    store.dispatch(SetConnections([
        {"name": "eth0", "exists": True},
        {"name": "eth1", "exists": True},
    ]))
    store.dispatch(SetRoutes([{"destination": "default", "gateway": "10.0.0.1"}]))
    return store


@pytest.fixture
def coordinator(store, backend):
    return SyncCoordinator(store, backend)


def backend_calls(backend):
    return [c[0] for c in backend.mock_calls]


class TestAddConnection:
    """Tests for add_connection."""

    @pytest.mark.asyncio
    async def test_success(self, coordinator, store, backend):
        """Adding persists, brings up and reloads the connection."""
        conn = await coordinator.add_connection({"name": "br0", "type": "br", "bridge": {"ports": ["eth0"]}})

        assert backend_calls(backend) == ["add_connection", "reload_connection"]
        backend.reload_connection.assert_awaited_once_with("br0")
        assert backend.add_connection.await_args.args[0].exists is False

        assert conn.exists is True
        assert store.find_connection("br0").exists is True
        br0 = store.find_interface("br0")
        assert br0.type == InterfaceType.BRIDGE
        assert br0.status == InterfaceStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_optimistic_before_backend(self, coordinator, store, backend):
        """The store shows the new connection before the backend is called."""
        seen = []

        async def record(conn):
            seen.append(store.find_interface(conn.name).status)

        backend.add_connection.side_effect = record

        await coordinator.add_connection({"name": "eth1"})

        assert seen == [InterfaceStatus.IN_PROGRESS]

    @pytest.mark.asyncio
    async def test_backend_failure(self, coordinator, store, backend):
        """A backend error marks the interface as failed instead of raising."""
        backend.add_connection.side_effect = BackendError("ifup failed")

        conn = await coordinator.add_connection({"name": "eth1", "mtu": 9000})

        assert conn.exists is False
        backend.reload_connection.assert_not_awaited()
        iface = store.find_interface("eth1")
        assert iface.status == InterfaceStatus.ERROR
        assert iface.error == "ifup failed"

    @pytest.mark.asyncio
    async def test_invalid_payload_raises(self, coordinator, backend):
        """Payloads without a name are rejected before anything is dispatched."""
        with pytest.raises(ValueError):
            await coordinator.add_connection({"type": "eth"})

        assert backend.mock_calls == []


class TestUpdateConnection:
    """Tests for update_connection."""

    @pytest.mark.asyncio
    async def test_success(self, coordinator, store, backend):
        """Updating writes the merged connection and reloads it."""
        conn = store.find_connection("eth0")

        updated = await coordinator.update_connection(conn, {"mtu": 9000})

        assert updated.id == conn.id
        assert store.find_connection("eth0").mtu == 9000
        assert backend_calls(backend) == ["update_connection", "reload_connection"]
        backend.update_connection.assert_awaited_once_with(updated)
        assert store.find_interface("eth0").status == InterfaceStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_reload_failure(self, coordinator, store, backend):
        """A failed reload shows up as an interface error."""
        backend.reload_connection.side_effect = BackendError("ifreload failed")

        await coordinator.update_connection(store.find_connection("eth0"), {"mtu": 9000})

        iface = store.find_interface("eth0")
        assert iface.status == InterfaceStatus.ERROR
        assert iface.error == "ifreload failed"

    @pytest.mark.asyncio
    async def test_unknown_field_raises(self, coordinator, store, backend):
        """Unknown fields raise and leave the store untouched."""
        with pytest.raises(ValueError):
            await coordinator.update_connection(store.find_connection("eth0"), {"colour": "red"})

        assert backend.mock_calls == []


class TestDeleteConnection:
    """Tests for delete_connection."""

    @pytest.mark.asyncio
    async def test_physical(self, coordinator, store, backend):
        """Deleting a physical connection removes the file and sets the device down."""
        conn = store.find_connection("eth0")

        await coordinator.delete_connection(conn)

        assert store.find_connection("eth0") is None
        assert store.find_interface("eth0").status == InterfaceStatus.IN_PROGRESS
        assert backend_calls(backend) == ["remove_connection", "set_down"]
        backend.set_down.assert_awaited_once_with("eth0")

    @pytest.mark.asyncio
    async def test_virtual(self, coordinator, store, backend):
        """Deleting a virtual connection drops its interface too."""
        conn = await coordinator.add_connection({"name": "br0", "type": "br"})

        await coordinator.delete_connection(conn)

        assert store.find_interface("br0") is None
        assert store.find_connection("br0") is None

    @pytest.mark.asyncio
    async def test_failure(self, coordinator, store, backend):
        """A failed removal is reported and the device is left up."""
        backend.remove_connection.side_effect = PermissionError("read-only")

        await coordinator.delete_connection(store.find_connection("eth0"))

        assert store.find_interface("eth0").status == InterfaceStatus.ERROR
        backend.set_down.assert_not_awaited()


class TestChangeConnectionState:
    """Tests for change_connection_state."""

    @pytest.mark.asyncio
    async def test_set_up(self, coordinator, store, backend):
        """set_up=True brings the interface up without an optimistic change."""
        before = store.get_state()

        await coordinator.change_connection_state(store.find_connection("eth0"), True)

        backend.set_up.assert_awaited_once_with("eth0")
        assert store.get_state() is before

    @pytest.mark.asyncio
    async def test_set_down(self, coordinator, store, backend):
        """set_up=False takes the interface down."""
        await coordinator.change_connection_state(store.find_connection("eth0"), False)

        backend.set_down.assert_awaited_once_with("eth0")
        backend.set_up.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure(self, coordinator, store, backend):
        """A failed ifup is reported on the interface."""
        backend.set_up.side_effect = BackendError("no carrier")

        await coordinator.change_connection_state(store.find_connection("eth0"), True)

        iface = store.find_interface("eth0")
        assert iface.status == InterfaceStatus.ERROR
        assert iface.error == "no carrier"


class TestOrdering:
    """Operations on one name run one at a time."""

    @staticmethod
    def track_concurrency(backend):
        counters = {"active": 0, "max": 0}

        async def slow(conn):
            counters["active"] += 1
            counters["max"] = max(counters["max"], counters["active"])
            await asyncio.sleep(0.01)
            counters["active"] -= 1

        backend.update_connection.side_effect = slow
        return counters

    @pytest.mark.asyncio
    async def test_same_name_serialized(self, coordinator, store, backend):
        """Operations on one name never overlap."""
        counters = self.track_concurrency(backend)
        conn = store.find_connection("eth0")

        await asyncio.gather(
            coordinator.update_connection(conn, {"mtu": 1400}),
            coordinator.update_connection(conn, {"mtu": 9000}),
        )

        assert counters["max"] == 1
        assert store.find_connection("eth0").mtu == 9000
        mtus = [c.args[0].mtu for c in backend.update_connection.await_args_list]
        assert mtus == [1400, 9000]

    @pytest.mark.asyncio
    async def test_different_names_interleave(self, coordinator, store, backend):
        """Operations on different names run concurrently."""
        counters = self.track_concurrency(backend)

        await asyncio.gather(
            coordinator.update_connection(store.find_connection("eth0"), {"mtu": 1400}),
            coordinator.update_connection(store.find_connection("eth1"), {"mtu": 1400}),
        )

        assert counters["max"] == 2


class TestDiscovery:
    """Tests for fetching and notifications."""

    @pytest.mark.asyncio
    async def test_refresh(self, backend):
        """refresh loads interfaces, connections and routes."""
        backend.get_interfaces.return_value = [{"interface": {"name": "eth0"}}, {"name": "br0", "bridge": {}}]
        backend.get_connections.return_value = [{"name": "br0", "bridge": {"ports": []}, "exists": True}]
        backend.get_routes.return_value = [{"destination": "default", "gateway": "10.0.0.1"}]
        coordinator = create_coordinator(backend)

        await coordinator.refresh()

        state = coordinator.get_state()
        assert len(state.interfaces) == 2
        assert len(state.connections) == 1
        assert len(state.routes) == 1

    @pytest.mark.asyncio
    async def test_fetch_errors_propagate(self, coordinator, backend):
        """Discovery errors reach the caller."""
        backend.get_interfaces.side_effect = BackendError("no sysfs")

        with pytest.raises(BackendError):
            await coordinator.fetch_interfaces()

    @pytest.mark.asyncio
    async def test_interface_changes_update_store(self, coordinator, store, backend):
        """Backend confirmations reach the store as interface updates."""
        await coordinator.update_connection(store.find_connection("eth0"), {"mtu": 9000})
        unsubscribe = MagicMock()
        backend.on_interface_change.return_value = unsubscribe

        stop = coordinator.listen_to_interface_changes()
        callback = backend.on_interface_change.call_args.args[0]
        callback({"interface": {"name": "eth0"}, "link": True, "status": "idle", "error": None})

        iface = store.find_interface("eth0")
        assert iface.status == InterfaceStatus.IDLE
        assert iface.link is True
        assert stop is unsubscribe

    @pytest.mark.asyncio
    async def test_link_change_keeps_error(self, coordinator, store, backend):
        """A plain link notification does not hide a failed change."""
        backend.reload_connection.side_effect = BackendError("ifreload failed")
        await coordinator.update_connection(store.find_connection("eth0"), {"mtu": 9000})

        coordinator.listen_to_interface_changes()
        callback = backend.on_interface_change.call_args.args[0]
        callback({"interface": {"name": "eth0"}, "link": True})

        iface = store.find_interface("eth0")
        assert iface.link is True
        assert iface.status == InterfaceStatus.ERROR
        assert iface.error == "ifreload failed"

    @pytest.mark.asyncio
    async def test_subscribe_passthrough(self, coordinator):
        """Subscribers see every new snapshot."""
        seen = []
        coordinator.subscribe(seen.append)

        await coordinator.change_connection_state(coordinator.store.find_connection("eth0"), True)
        await coordinator.add_connection({"name": "eth1"})

        assert seen
        assert seen[-1] is coordinator.get_state()

    @pytest.mark.asyncio
    async def test_service_is_active(self, coordinator, backend):
        """Backend errors from the service check read as inactive."""
        backend.is_active.return_value = True
        assert await coordinator.service_is_active() is True

        backend.is_active.side_effect = BackendError("systemctl missing")
        assert await coordinator.service_is_active() is False

    @pytest.mark.asyncio
    async def test_close(self, coordinator, backend):
        """close stops listening and closes the backend."""
        unsubscribe = MagicMock()
        backend.on_interface_change.return_value = unsubscribe
        coordinator.listen_to_interface_changes()

        await coordinator.close()

        unsubscribe.assert_called_once()
        backend.close.assert_awaited_once()


class TestRoutes:
    """Tests for route editing."""

    @pytest.mark.asyncio
    async def test_add_route(self, coordinator, store, backend):
        """New routes are appended and saved."""
        route = await coordinator.add_route({"destination": "10.1.0.0", "gateway": "10.0.0.2", "device": "eth0"})

        routes = list(store.get_state().routes.values())
        assert routes[-1] == route
        assert len(routes) == 2
        backend.update_routes.assert_awaited_once_with(routes)

    @pytest.mark.asyncio
    async def test_update_route(self, coordinator, store, backend):
        """Edited routes keep their id and position."""
        route = list(store.get_state().routes.values())[0]

        updated = await coordinator.update_route(route, {"gateway": "10.0.0.254"})

        assert updated.id == route.id
        assert list(store.get_state().routes.values()) == [
            Route(destination="default", gateway="10.0.0.254")
        ]

    @pytest.mark.asyncio
    async def test_delete_route(self, coordinator, store, backend):
        """Deleted routes are removed from store and backend."""
        route = list(store.get_state().routes.values())[0]

        await coordinator.delete_route(route)

        assert len(store.get_state().routes) == 0
        backend.update_routes.assert_awaited_once_with([])

    @pytest.mark.asyncio
    async def test_failure_reloads_routes(self, coordinator, store, backend):
        """A failed save reloads the routes from the backend."""
        backend.update_routes.side_effect = BackendError("read-only filesystem")
        backend.get_routes.return_value = [{"destination": "default", "gateway": "10.0.0.1"}]

        await coordinator.add_route({"destination": "10.1.0.0", "gateway": "10.0.0.2"})

        backend.get_routes.assert_awaited_once()
        assert [r.destination for r in store.get_state().routes.values()] == ["default"]

    @pytest.mark.asyncio
    async def test_reload_failure_is_logged(self, coordinator, store, backend, caplog):
        """When the routes cannot be reloaded either, the edit still returns."""
        backend.update_routes.side_effect = BackendError("ro fs")
        backend.get_routes.side_effect = BackendError("io")

        route = await coordinator.add_route({"destination": "10.1.0.0", "gateway": "10.0.0.2"})

        assert route.destination == "10.1.0.0"
        backend.get_routes.assert_awaited_once()
        assert "Failed to reload routes" in caplog.text
