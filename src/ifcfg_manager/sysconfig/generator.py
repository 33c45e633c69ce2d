"""Generators for sysconfig network files.

Builds the ordered key/value mapping of an ``ifcfg-<name>`` file from a
Connection and the column text of route files from Route records.
"""
from typing import Iterable, Optional

from ..model.schema import (
    BondSettings,
    BridgeSettings,
    Connection,
    IPConfig,
    Route,
    VlanSettings,
    combined_boot_proto,
)
from .parser import ABSENT


def boot_proto_for(connection: Connection) -> str:
    """BOOTPROTO value combining both IP families."""
    return combined_boot_proto(connection.ipv4, connection.ipv6).value


def encode_interface_config(connection: Connection) -> dict[str, Optional[str]]:
    """
    Build the ifcfg key/value mapping for a connection.

    Key order is the order the file is written in: NAME, BOOTPROTO,
    STARTMODE, MTU, addresses, then the bridge, bond and VLAN blocks when
    the connection has them. Keys whose value is None are dropped when the
    mapping is serialized.

    Args:
        connection: Connection to encode

    Returns:
        Ordered dict of sysconfig keys
    """
    return {
        "NAME": connection.name,
        "BOOTPROTO": boot_proto_for(connection),
        "STARTMODE": connection.start_mode.value,
        "MTU": str(connection.mtu) if connection.mtu else None,
        **_addresses_to_sysconfig(connection),
        **_bridge_to_sysconfig(connection.bridge),
        **_bond_to_sysconfig(connection.bond),
        **_vlan_to_sysconfig(connection.vlan),
    }


def _addresses_to_sysconfig(connection: Connection) -> dict[str, str]:
    # IPv6 numbering continues where IPv4 stopped: one flat IPADDR list
    ipv4 = _ip_to_sysconfig(connection.ipv4)
    ipv6 = _ip_to_sysconfig(connection.ipv6, len(connection.ipv4.addresses))
    return {**ipv4, **ipv6}


def _ip_to_sysconfig(ip: IPConfig, initial_index: int = 0) -> dict[str, str]:
    data = {}

    for n, address in enumerate(ip.addresses):
        index = n + initial_index
        suffix = "" if index == 0 else f"_{index}"

        data[f"IPADDR{suffix}"] = address.local
        if address.label:
            data[f"LABEL{suffix}"] = address.label

    return data


def _bridge_to_sysconfig(bridge: Optional[BridgeSettings]) -> dict[str, str]:
    if bridge is None:
        return {}
    return {
        "BRIDGE": "yes",
        "BRIDGE_PORTS": " ".join(bridge.ports),
    }


def _bond_to_sysconfig(bond: Optional[BondSettings]) -> dict[str, str]:
    if bond is None:
        return {}

    module_opts = f"mode={bond.mode.value} {bond.options}".strip()
    slaves = {
        f"BONDING_SLAVE_{n}": name
        for n, name in enumerate(bond.interfaces)
    }
    return {
        "BONDING_MASTER": "yes",
        "BONDING_MODULE_OPTS": module_opts,
        **slaves,
    }


def _vlan_to_sysconfig(vlan: Optional[VlanSettings]) -> dict[str, str]:
    if vlan is None:
        return {}
    return {
        "VLAN_ID": str(vlan.vlan_id),
        "ETHERDEVICE": vlan.parent_device,
    }


def encode_routes(routes: Iterable[Route]) -> str:
    """
    Render routes as tab separated columns, one route per line.

    The device column is always written as ``-``: the file a route is
    written to already names the device.
    """
    lines = []
    for route in routes:
        columns = [route.destination, route.gateway, route.netmask, None, route.options]
        lines.append("\t".join(c or ABSENT for c in columns))
    return "\n".join(lines)
