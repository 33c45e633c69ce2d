"""Parsers for sysconfig network files.

Reads ``ifroute-*``/``routes`` static route files and ``ifcfg-*`` key/value
files into structured data. Parsing is best effort: a malformed line is
skipped and never aborts the whole file.
"""
import logging
import re
import shlex
from typing import Any, Optional

from ..model.schema import Route

logger = logging.getLogger(__name__)

ROUTE_COLUMNS = ("destination", "gateway", "netmask", "device", "options")

# A route line needs at least a destination and a gateway column
MIN_ROUTE_COLUMNS = 2

ABSENT = "-"

HORIZONTAL_WHITESPACE = re.compile(r"[ \t]+")

SYSCONFIG_LINE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=(.*)$")

ADDRESS_KEY = re.compile(r"^IPADDR(_\w+)?$")

BOND_SLAVE_KEY = re.compile(r"^BONDING_SLAVE_?(\d+)$")

# STARTMODE -> wicked control block
CONTROL_FOR_START_MODE = {
    "auto": {"mode": "boot"},
    "onboot": {"mode": "boot"},
    "boot": {"mode": "boot"},
    "nfsroot": {"mode": "boot", "boot_stage": "localfs", "persistent": "true"},
    "hotplug": {"mode": "hotplug"},
    "ifplugd": {"mode": "ifplugd"},
    "manual": {"mode": "manual"},
}


class RouteParser:
    """Parse static route files (see ifroute(5))."""

    def parse(self, content: str, device: Optional[str] = None) -> list[Route]:
        """
        Parse route file content.

        Args:
            content: File content
            device: Interface the file belongs to; used as the default
                device for routes that do not name one

        Returns:
            One Route per retained line, in file order
        """
        routes = []
        content = HORIZONTAL_WHITESPACE.sub(" ", content or "")

        for number, line in enumerate(content.split("\n"), start=1):
            line = line.strip()

            # Skip comments and empty lines
            if not line or line.startswith("#"):
                continue

            columns = line.split(" ")
            if len(columns) < MIN_ROUTE_COLUMNS:
                logger.debug(f"Skipping malformed route on line {number}: {line}")
                continue

            # Options may span several tokens ("metric 100 mtu 1400")
            last = len(ROUTE_COLUMNS) - 1
            if len(columns) > len(ROUTE_COLUMNS):
                columns = columns[:last] + [" ".join(columns[last:])]

            values = [None if c == ABSENT else c for c in columns]
            values += [None] * (len(ROUTE_COLUMNS) - len(values))
            route = dict(zip(ROUTE_COLUMNS, values))

            if route["device"] is None and device:
                route["device"] = device

            routes.append(Route(**route))

        return routes


def decode_routes(content: str, device: Optional[str] = None) -> list[Route]:
    """Decode route file content into Route records."""
    return RouteParser().parse(content, device)


class SysconfigParser:
    """Read and write ``KEY="VALUE"`` files."""

    def parse(self, content: str) -> dict[str, str]:
        """
        Parse sysconfig content into an ordered mapping.

        Quotes are removed; comments, blank and malformed lines are skipped.
        """
        data: dict[str, str] = {}

        for line in (content or "").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            match = SYSCONFIG_LINE.match(line)
            if not match:
                logger.debug(f"Skipping malformed sysconfig line: {line}")
                continue

            key, raw_value = match.groups()
            try:
                data[key] = " ".join(shlex.split(raw_value, comments=True))
            except ValueError:
                logger.debug(f"Skipping sysconfig line with unbalanced quotes: {line}")

        return data

    def stringify(self, data: dict[str, Any]) -> str:
        """Serialize a mapping, one line per defined value, in insertion order."""
        lines = [
            f'{key}="{self._escape(str(value))}"'
            for key, value in data.items()
            if value is not None
        ]
        return "".join(f"{line}\n" for line in lines)

    def _escape(self, value: str) -> str:
        return value.replace("\\", "\\\\").replace('"', '\\"')


def _address_keys(data: dict[str, str]) -> list[tuple[str, str]]:
    """Return (IPADDR key, suffix) pairs, unsuffixed first, then by index."""
    keys = []
    for key in data:
        match = ADDRESS_KEY.match(key)
        if match:
            keys.append((key, match.group(1) or ""))

    def order(item: tuple[str, str]) -> tuple[int, int]:
        suffix = item[1].lstrip("_")
        if not suffix:
            return (0, 0)
        return (1, int(suffix)) if suffix.isdigit() else (2, 0)

    return sorted(keys, key=order)


def _addresses_from(data: dict[str, str]) -> tuple[list[dict], list[dict]]:
    ipv4, ipv6 = [], []

    for key, suffix in _address_keys(data):
        local = data[key]
        if not local:
            continue
        address = {"local": local, "label": data.get(f"LABEL{suffix}", "")}
        (ipv6 if ":" in local else ipv4).append(address)

    return ipv4, ipv6


def _bond_from(data: dict[str, str]) -> dict:
    slaves = []
    for key, value in data.items():
        match = BOND_SLAVE_KEY.match(key)
        if match and value:
            slaves.append((int(match.group(1)), value))
    slaves.sort()

    mode = None
    options = []
    for option in data.get("BONDING_MODULE_OPTS", "").split():
        if option.startswith("mode="):
            mode = option.split("=", 1)[1]
        else:
            options.append(option)

    bond: dict[str, Any] = {
        "slaves": [name for _, name in slaves],
        "options": " ".join(options),
    }
    if mode:
        bond["mode"] = mode
    return bond


def _vlan_from(name: str, data: dict[str, str]) -> dict:
    vlan_id = data.get("VLAN_ID")
    if not vlan_id and "." in name:
        vlan_id = name.rsplit(".", 1)[1]
    return {"tag": vlan_id, "device": data.get("ETHERDEVICE")}


def sysconfig_to_payload(name: str, data: dict[str, str]) -> dict[str, Any]:
    """
    Convert a parsed ifcfg mapping into a connection payload.

    The result has the same shape as the backend discovery payloads, so it
    can be fed to ``create_connection``. Addresses are split by family from
    the flat IPADDR numbering.
    """
    payload: dict[str, Any] = {"name": name, "exists": True}

    control = CONTROL_FOR_START_MODE.get(data.get("STARTMODE", "").lower())
    if control:
        payload["control"] = dict(control)

    if data.get("MTU"):
        payload["link"] = {"mtu": data["MTU"]}

    boot_proto = data.get("BOOTPROTO", "none").lower()
    ipv4, ipv6 = _addresses_from(data)

    if ipv4:
        payload["ipv4:static"] = ipv4
    if ipv6:
        payload["ipv6:static"] = ipv6
    if boot_proto.startswith("dhcp") and boot_proto != "dhcp6":
        payload["ipv4:dhcp"] = {"enabled": "true"}
    if boot_proto in ("dhcp", "dhcp6"):
        payload["ipv6:dhcp"] = {"enabled": "true"}

    if data.get("BRIDGE", "").lower() == "yes":
        payload["bridge"] = {"ports": data.get("BRIDGE_PORTS", "").split()}

    if data.get("BONDING_MASTER", "").lower() == "yes":
        payload["bond"] = _bond_from(data)

    if data.get("ETHERDEVICE"):
        payload["vlan"] = _vlan_from(name, data)

    return payload
