"""Factory functions to build model objects from backend payloads.

Payloads are plain dicts as reported by the backend (wicked-style keys such
as ``ipv4:static`` or ``ethtool.driver_info``) or as submitted by the UI
(``boot_proto``/``addresses``). Everything lands in the same normalized
dataclasses.
"""
import dataclasses
import logging
from typing import Any, Iterable, Mapping, Optional, Union

from .schema import (
    Address,
    BondSettings,
    BondingMode,
    BootProtocol,
    BridgeSettings,
    Connection,
    IPConfig,
    Interface,
    InterfaceStatus,
    InterfaceType,
    Route,
    StartMode,
    VlanSettings,
    generate_id,
)

logger = logging.getLogger(__name__)

START_MODE = {
    "boot": StartMode.AUTO,
    "hotplug": StartMode.HOTPLUG,
    "ifplugd": StartMode.IFPLUGD,
    "manual": StartMode.MANUAL,
}

# Sub-payloads that reveal the interface type, checked in order
TYPE_SIGNALS = [
    ("bond", InterfaceType.BONDING),
    ("bridge", InterfaceType.BRIDGE),
    ("vlan", InterfaceType.VLAN),
    ("wireless", InterfaceType.WIRELESS),
]

# camelCase aliases accepted from UI payloads
ALIASES = {
    "startMode": "start_mode",
    "usedBy": "used_by",
    "bootProto": "boot_proto",
    "vlanId": "vlan_id",
    "parentDevice": "parent_device",
}

CONNECTION_FIELDS = {f.name for f in dataclasses.fields(Connection)}


def _get(payload: Mapping[str, Any], *path: str) -> Any:
    """Walk nested dicts, returning None on the first missing key."""
    value: Any = payload
    for key in path:
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def _normalize_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {ALIASES.get(k, k): v for k, v in data.items()}


def type_from_payload(payload: Mapping[str, Any]) -> InterfaceType:
    """Infer the interface type from a payload.

    An explicit, known ``type`` wins; otherwise bridge/bond/vlan/wireless
    sub-payloads decide; ethernet is the fallback.
    """
    explicit = payload.get("type")
    if explicit:
        try:
            return InterfaceType(explicit)
        except ValueError:
            logger.debug(f"Ignoring unknown interface type: {explicit}")

    for key, iface_type in TYPE_SIGNALS:
        if payload.get(key) is not None:
            return iface_type

    return InterfaceType.ETHERNET


def interface_name(payload: Mapping[str, Any]) -> Optional[str]:
    return payload.get("name") or _get(payload, "interface", "name")


def _reveals_type(payload: Mapping[str, Any]) -> bool:
    return bool(payload.get("type")) or any(
        payload.get(key) is not None for key, _ in TYPE_SIGNALS
    )


def interface_changes(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Collect the Interface fields a notification payload actually carries.

    Unlike create_interface nothing is defaulted: a key missing from the
    payload is missing from the result, so merging the result onto a stored
    interface keeps what the store already knows (status and error
    included).
    """
    changes: dict[str, Any] = {}

    mac = payload.get("mac") or _get(payload, "ethernet", "address")
    if mac:
        changes["mac"] = mac

    driver = payload.get("driver") or _get(payload, "ethtool", "driver_info", "driver")
    if driver:
        changes["driver"] = driver

    if "description" in payload:
        changes["description"] = payload["description"] or ""
    if "link" in payload:
        changes["link"] = bool(payload["link"])

    if _reveals_type(payload):
        iface_type = type_from_payload(payload)
        changes["type"] = iface_type
        changes["virtual"] = bool(payload.get("virtual", iface_type.is_virtual))
    elif "virtual" in payload:
        changes["virtual"] = bool(payload["virtual"])

    if payload.get("status"):
        changes["status"] = InterfaceStatus(payload["status"])
    if "error" in payload:
        changes["error"] = payload["error"]

    return changes


def create_interface(payload: Mapping[str, Any]) -> Interface:
    """Create an Interface from a discovery payload.

    Args:
        payload: Either flat (``name``, ``mac``, ``driver``) or wicked-style
            (``interface.name``, ``ethernet.address``,
            ``ethtool.driver_info.driver``)

    Returns:
        Interface with a fresh id and ``idle`` status
    """
    name = interface_name(payload)
    if not name:
        raise ValueError("Interface payload without a name")

    iface_type = type_from_payload(payload)
    mac = payload.get("mac") or _get(payload, "ethernet", "address")
    driver = payload.get("driver") or _get(payload, "ethtool", "driver_info", "driver")

    return Interface(
        id=payload.get("id") or generate_id(),
        name=name,
        type=iface_type,
        description=payload.get("description") or "",
        mac=mac,
        driver=driver,
        link=bool(payload.get("link", False)),
        virtual=bool(payload.get("virtual", iface_type.is_virtual)),
    )


def create_address_config(
    partial: Optional[Union[Mapping[str, Any], Address]] = None,
    **attrs: Any,
) -> Address:
    """Create an Address, generating an id when none is given."""
    if isinstance(partial, Address):
        return partial

    data = {**(partial or {}), **attrs}
    return Address(
        id=data.get("id") or generate_id(),
        local=data.get("local") or "",
        label=data.get("label") or "",
    )


def _addresses(raw: Optional[Iterable[Any]]) -> tuple[Address, ...]:
    if not raw:
        return ()
    result = []
    for item in raw:
        if isinstance(item, str):
            item = {"local": item}
        result.append(create_address_config(item))
    return tuple(result)


def _dhcp_enabled(dhcp: Any) -> bool:
    if isinstance(dhcp, Mapping):
        return str(dhcp.get("enabled", "")).lower() == "true"
    return dhcp is True


def ip_config_from(value: Any) -> IPConfig:
    """Normalize one family's settings into an IPConfig.

    Accepts an IPConfig, a ``{"boot_proto", "addresses"}`` dict or a nested
    wicked dict ``{"static": [...], "dhcp": {"enabled": "true"}}``.
    """
    if isinstance(value, IPConfig):
        return value
    if not value:
        return IPConfig()

    data = _normalize_keys(value)
    if "boot_proto" in data or "addresses" in data:
        return IPConfig(
            boot_proto=BootProtocol(data.get("boot_proto") or BootProtocol.NONE),
            addresses=_addresses(data.get("addresses")),
        )

    return _ip_config_from_wicked(data.get("static"), data.get("dhcp"))


def _ip_config_from_wicked(static: Any, dhcp: Any) -> IPConfig:
    addresses = _addresses(static)

    if _dhcp_enabled(dhcp):
        boot_proto = BootProtocol.DHCP
    elif addresses:
        boot_proto = BootProtocol.STATIC
    else:
        boot_proto = BootProtocol.NONE

    return IPConfig(boot_proto=boot_proto, addresses=addresses)


def _family_config(payload: Mapping[str, Any], family: str) -> IPConfig:
    static = payload.get(f"{family}:static")
    dhcp = payload.get(f"{family}:dhcp")
    if static is not None or dhcp is not None:
        return _ip_config_from_wicked(static, dhcp)
    return ip_config_from(payload.get(family))


def start_mode_from(payload: Mapping[str, Any]) -> StartMode:
    """Derive the start mode from the ``control`` sub-payload."""
    explicit = payload.get("start_mode")
    if explicit:
        return StartMode(explicit)

    control = payload.get("control")
    if not control:
        return StartMode.OFF

    mode = control.get("mode")
    if mode == "boot":
        nfsroot = (
            control.get("boot_stage") == "localfs"
            and str(control.get("persistent")).lower() == "true"
        )
        return StartMode.NFSROOT if nfsroot else StartMode.AUTO

    return START_MODE.get(mode, StartMode.OFF)


def _port_names(ports: Optional[Iterable[Any]]) -> tuple[str, ...]:
    names = []
    for port in ports or []:
        if isinstance(port, Mapping):
            port = port.get("device") or port.get("name")
        if port:
            names.append(str(port))
    return tuple(names)


def bond_from(value: Any) -> Optional[BondSettings]:
    if value is None or isinstance(value, BondSettings):
        return value
    interfaces = value.get("interfaces", value.get("slaves"))
    return BondSettings(
        mode=BondingMode(value.get("mode") or BondingMode.ACTIVE_BACKUP),
        interfaces=_port_names(interfaces),
        options=value.get("options") or "",
    )


def bridge_from(value: Any) -> Optional[BridgeSettings]:
    if value is None or isinstance(value, BridgeSettings):
        return value
    return BridgeSettings(ports=_port_names(value.get("ports")))


def vlan_from(value: Any) -> Optional[VlanSettings]:
    if value is None or isinstance(value, VlanSettings):
        return value
    data = _normalize_keys(value)
    vlan_id = data.get("vlan_id", data.get("tag"))
    parent = data.get("parent_device", data.get("device"))
    if vlan_id is None or not parent:
        raise ValueError(f"Incomplete VLAN settings: {value}")
    return VlanSettings(vlan_id=int(vlan_id), parent_device=str(parent))


def _mtu_from(payload: Mapping[str, Any]) -> Optional[int]:
    mtu = _get(payload, "link", "mtu") or payload.get("mtu")
    return int(mtu) if mtu else None


def create_connection(payload: Mapping[str, Any]) -> Connection:
    """Create a Connection from a backend or UI payload.

    Type-specific settings are only taken for the matching inferred type:
    a ``bond`` block on a bridge payload is ignored.
    """
    payload = _normalize_keys(payload)
    name = payload.get("name")
    if not name:
        raise ValueError("Connection payload without a name")

    conn_type = type_from_payload(payload)
    used_by = payload.get("used_by") or _get(payload, "link", "master")

    bond = bridge = vlan = None
    if conn_type == InterfaceType.BONDING:
        bond = bond_from(payload.get("bond") or {})
    elif conn_type == InterfaceType.BRIDGE:
        bridge = bridge_from(payload.get("bridge") or {})
    elif conn_type == InterfaceType.VLAN and payload.get("vlan"):
        vlan = vlan_from(payload["vlan"])

    return Connection(
        id=payload.get("id") or generate_id(),
        name=name,
        description=payload.get("description") or "",
        type=conn_type,
        start_mode=start_mode_from(payload),
        mtu=_mtu_from(payload),
        ipv4=_family_config(payload, "ipv4"),
        ipv6=_family_config(payload, "ipv6"),
        used_by=used_by,
        bond=bond,
        bridge=bridge,
        vlan=vlan,
        exists=bool(payload.get("exists", False)),
    )


def merge_connection(
    existing: Connection,
    changes: Union[Mapping[str, Any], Connection],
) -> Connection:
    """Apply ``changes`` on top of ``existing``.

    ``ipv4``/``ipv6`` are replaced as a whole when present and preserved
    when omitted. Fields not mentioned in ``changes`` are kept. The id
    never changes.
    """
    if isinstance(changes, Connection):
        return dataclasses.replace(changes, id=existing.id)

    data = _normalize_keys(changes)
    unknown = set(data) - CONNECTION_FIELDS
    if unknown:
        raise ValueError(f"Unknown connection fields: {', '.join(sorted(unknown))}")

    converters = {
        "ipv4": ip_config_from,
        "ipv6": ip_config_from,
        "bond": bond_from,
        "bridge": bridge_from,
        "vlan": vlan_from,
        "type": InterfaceType,
        "start_mode": StartMode,
    }
    updates = {
        key: converters[key](value) if key in converters and value is not None else value
        for key, value in data.items()
        if key != "id"
    }
    return dataclasses.replace(existing, **updates)


def create_route(payload: Union[Mapping[str, Any], Route]) -> Route:
    """Create a Route with a fresh id unless one is given."""
    if isinstance(payload, Route):
        return payload
    return Route(
        id=payload.get("id") or generate_id(),
        destination=payload.get("destination"),
        gateway=payload.get("gateway"),
        netmask=payload.get("netmask"),
        device=payload.get("device"),
        options=payload.get("options"),
    )


def placeholder_connection(interface: Interface) -> Connection:
    """Unconfigured connection offered for an interface without one."""
    return Connection(
        name=interface.name,
        type=interface.type,
        start_mode=StartMode.OFF,
        exists=False,
    )
