"""Backend for hosts managed by wicked with sysconfig files.

Configuration is persisted as ifcfg/ifroute files and applied by running
the ``wicked`` CLI. Devices are discovered from sysfs, which is also polled
to report interface changes.
"""
import asyncio
import contextlib
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from ..config.settings import Settings
from ..model.schema import Connection, Route
from ..sysconfig.files import IfcfgFile, IfrouteFile
from ..sysconfig.parser import sysconfig_to_payload
from ..utils.logging_config import timed
from ..utils.retry import with_retry
from .base import BackendError, InterfaceChangeCallback, NetworkBackend

logger = logging.getLogger(__name__)

# sysfs DEVTYPE -> payload key revealing the interface type
DEVTYPE_PAYLOAD_KEYS = {
    "bridge": "bridge",
    "bond": "bond",
    "vlan": "vlan",
    "wlan": "wireless",
}


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text().strip()
    except OSError:
        return None


def _read_uevent(path: Path) -> dict[str, str]:
    content = _read_text(path) or ""
    return dict(
        line.split("=", 1) for line in content.splitlines() if "=" in line
    )


class WickedBackend(NetworkBackend):
    """
    NetworkBackend driving wicked.

    Usage:
        async with WickedBackend(Settings.load()) as backend:
            interfaces = await backend.get_interfaces()
            await backend.reload_connection("eth0")
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self._callbacks: list[InterfaceChangeCallback] = []
        self._watch_task: Optional[asyncio.Task] = None
        self._run_command = with_retry(
            max_attempts=self.settings.command_retries
        )(self._run_command_once)

    @property
    def sysconfig_dir(self) -> Path:
        return self.settings.sysconfig_dir

    # === Commands ===

    async def _run_command_once(self, *args: str) -> str:
        """Run a command, returning stdout; non-zero exit raises BackendError."""
        cmd = " ".join(args)
        logger.debug(f"Running: {cmd}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise BackendError(f"Cannot run '{cmd}': {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.settings.command_timeout
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise BackendError(
                f"'{cmd}' timed out after {self.settings.command_timeout}s"
            )

        if proc.returncode != 0:
            message = stderr.decode(errors="replace").strip() or f"exit code {proc.returncode}"
            logger.error(f"Command failed: {cmd}: {message}")
            raise BackendError(f"'{cmd}' failed: {message}")

        return stdout.decode(errors="replace")

    async def _wicked(self, *args: str) -> str:
        return await self._run_command(self.settings.wicked_command, *args)

    async def _activate(self, action: str, name: str) -> None:
        """Run ``wicked <action> <name>`` and confirm it to the listeners."""
        await self._wicked(action, name)
        if self._callbacks:
            self._emit(await asyncio.to_thread(self._confirmation_payload, name))

    def _confirmation_payload(self, name: str) -> dict[str, Any]:
        path = self.settings.sysfs_dir / name
        payload = self._interface_payload(path) if path.is_dir() else {"interface": {"name": name}}
        return {**payload, "status": "idle", "error": None}

    @timed("is_active")
    async def is_active(self) -> bool:
        try:
            await self._run_command(
                self.settings.systemctl_command, "is-active", "--quiet",
                self.settings.service_name,
            )
        except BackendError:
            return False
        return True

    # === Discovery ===

    def _interface_payload(self, path: Path) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "interface": {"name": path.name},
            "link": _read_text(path / "operstate") == "up",
        }

        mac = _read_text(path / "address")
        if mac:
            payload["ethernet"] = {"address": mac}

        driver = path / "device" / "driver"
        if driver.exists():
            payload["ethtool"] = {"driver_info": {"driver": driver.resolve().name}}

        devtype = _read_uevent(path / "uevent").get("DEVTYPE")
        if (path / "bridge").is_dir():
            devtype = "bridge"
        elif (path / "bonding").is_dir():
            devtype = "bond"

        key = DEVTYPE_PAYLOAD_KEYS.get(devtype or "")
        if key:
            payload[key] = {}

        return payload

    def _read_interfaces(self) -> list[dict[str, Any]]:
        sysfs_dir = self.settings.sysfs_dir
        if not sysfs_dir.is_dir():
            logger.warning(f"Device directory not found: {sysfs_dir}")
            return []

        return [
            self._interface_payload(path)
            for path in sorted(sysfs_dir.iterdir())
            if path.name not in self.settings.ignored_interfaces
        ]

    def _read_connections(self) -> list[dict[str, Any]]:
        return [
            sysconfig_to_payload(name, IfcfgFile(name, self.sysconfig_dir).read())
            for name in IfcfgFile.list_names(self.sysconfig_dir)
            if name not in self.settings.ignored_interfaces
        ]

    def _read_routes(self) -> list[dict[str, Any]]:
        routes = IfrouteFile(None, self.sysconfig_dir).read()
        for device in IfrouteFile.list_devices(self.sysconfig_dir):
            routes.extend(IfrouteFile(device, self.sysconfig_dir).read())
        return [route.to_dict() for route in routes]

    @timed("get_interfaces")
    async def get_interfaces(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read_interfaces)

    @timed("get_connections")
    async def get_connections(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read_connections)

    @timed("get_routes")
    async def get_routes(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read_routes)

    # === Configuration ===

    async def _write_ifcfg(self, connection: Connection) -> None:
        try:
            await asyncio.to_thread(
                IfcfgFile(connection.name, self.sysconfig_dir).update, connection
            )
        except OSError as e:
            raise BackendError(f"Cannot write configuration for {connection.name}: {e}") from e

    @timed("add_connection")
    async def add_connection(self, connection: Connection) -> None:
        await self._write_ifcfg(connection)
        await self._activate("ifup", connection.name)

    @timed("update_connection")
    async def update_connection(self, connection: Connection) -> None:
        await self._write_ifcfg(connection)

    @timed("remove_connection")
    async def remove_connection(self, connection: Connection) -> None:
        try:
            await asyncio.to_thread(
                IfcfgFile(connection.name, self.sysconfig_dir).remove
            )
        except OSError as e:
            raise BackendError(f"Cannot remove configuration for {connection.name}: {e}") from e

    @timed("reload_connection")
    async def reload_connection(self, name: str) -> None:
        await self._activate("ifreload", name)

    @timed("set_up")
    async def set_up(self, name: str) -> None:
        await self._activate("ifup", name)

    @timed("set_down")
    async def set_down(self, name: str) -> None:
        await self._activate("ifdown", name)

    def _write_routes(self, routes: Iterable[Route]) -> None:
        by_device: dict[Optional[str], list[Route]] = defaultdict(list)
        for route in routes:
            by_device[route.device].append(route)

        global_file = IfrouteFile(None, self.sysconfig_dir)
        if by_device.get(None) or global_file.path.exists():
            global_file.update(by_device.pop(None, []))

        for device, device_routes in by_device.items():
            IfrouteFile(device, self.sysconfig_dir).update(device_routes)

        # Devices that no longer have routes
        for device in IfrouteFile.list_devices(self.sysconfig_dir):
            if device not in by_device:
                IfrouteFile(device, self.sysconfig_dir).remove()

    @timed("update_routes")
    async def update_routes(self, routes: Iterable[Route]) -> None:
        try:
            await asyncio.to_thread(self._write_routes, list(routes))
        except OSError as e:
            raise BackendError(f"Cannot write routes: {e}") from e

    # === Notifications ===

    def on_interface_change(self, callback: InterfaceChangeCallback) -> Callable[[], None]:
        """Register a callback; starts polling sysfs on the running loop."""
        self._callbacks.append(callback)

        if self._watch_task is None or self._watch_task.done():
            loop = asyncio.get_running_loop()
            self._watch_task = loop.create_task(self._watch())

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
            if not self._callbacks and self._watch_task:
                self._watch_task.cancel()

        return unsubscribe

    async def _watch(self) -> None:
        known = await self._interfaces_by_name()

        while True:
            await asyncio.sleep(self.settings.poll_interval)
            try:
                current = await self._interfaces_by_name()
            except OSError as e:
                logger.warning(f"Failed to poll interfaces: {e}")
                continue

            for name, payload in current.items():
                if known.get(name) != payload:
                    logger.debug(f"Interface {name} changed")
                    self._emit(payload)
            known = current

    async def _interfaces_by_name(self) -> dict[str, dict[str, Any]]:
        payloads = await self.get_interfaces()
        return {p["interface"]["name"]: p for p in payloads}

    def _emit(self, payload: dict[str, Any]) -> None:
        for callback in list(self._callbacks):
            try:
                callback(payload)
            except Exception as e:
                logger.exception(f"Interface change callback failed: {e}")

    async def close(self) -> None:
        self._callbacks.clear()
        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task
            self._watch_task = None
