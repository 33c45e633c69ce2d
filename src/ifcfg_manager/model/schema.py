"""Normalized network model shared by the codec, the store and the UI.

Entities are frozen dataclasses. Updates go through ``dataclasses.replace``
so a snapshot handed out by the store can never change under a reader.
"""
import uuid
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Mapping, Optional


def generate_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


class InterfaceType(str, Enum):
    """Kind of network device."""
    ETHERNET = "eth"
    BRIDGE = "br"
    BONDING = "bond"
    VLAN = "vlan"
    WIRELESS = "wlan"
    DUMMY = "dummy"

    @property
    def is_virtual(self) -> bool:
        return self in VIRTUAL_TYPES


# Interfaces of these types only exist while their connection does
VIRTUAL_TYPES = frozenset({
    InterfaceType.BRIDGE,
    InterfaceType.BONDING,
    InterfaceType.VLAN,
})


class InterfaceStatus(str, Enum):
    """Lifecycle of the last change applied to an interface."""
    IDLE = "idle"
    IN_PROGRESS = "in-progress"
    ERROR = "error"


class StartMode(str, Enum):
    """When the interface is brought up (STARTMODE)."""
    OFF = "off"
    AUTO = "auto"
    HOTPLUG = "hotplug"
    IFPLUGD = "ifplugd"
    MANUAL = "manual"
    NFSROOT = "nfsroot"


class BootProtocol(str, Enum):
    """Address assignment method (BOOTPROTO)."""
    DHCP = "dhcp"
    DHCP4 = "dhcp4"
    DHCP6 = "dhcp6"
    STATIC = "static"
    NONE = "none"

    @property
    def label(self) -> str:
        return BOOT_PROTOCOL_LABELS[self]


BOOT_PROTOCOL_LABELS = {
    BootProtocol.DHCP: "DHCP",
    BootProtocol.DHCP4: "DHCP (IPv4 only)",
    BootProtocol.DHCP6: "DHCP (IPv6 only)",
    BootProtocol.STATIC: "Static",
    BootProtocol.NONE: "None",
}


class BondingMode(str, Enum):
    """Linux bonding driver modes."""
    BALANCE_RR = "balance-rr"
    ACTIVE_BACKUP = "active-backup"
    BALANCE_XOR = "balance-xor"
    BROADCAST = "broadcast"
    IEEE_802_3AD = "802.3ad"
    BALANCE_TLB = "balance-tlb"
    BALANCE_ALB = "balance-alb"


@dataclass(frozen=True)
class Address:
    """A single IP address (optionally with prefix) and its label."""
    local: str = ""
    label: str = ""
    id: str = field(default_factory=generate_id, compare=False)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class IPConfig:
    """Per-family IP settings."""
    boot_proto: BootProtocol = BootProtocol.NONE
    addresses: tuple[Address, ...] = ()

    def to_dict(self) -> dict:
        return {
            "boot_proto": self.boot_proto.value,
            "addresses": [a.to_dict() for a in self.addresses],
        }


@dataclass(frozen=True)
class BondSettings:
    """Bonding master settings."""
    mode: BondingMode = BondingMode.ACTIVE_BACKUP
    interfaces: tuple[str, ...] = ()
    options: str = ""


@dataclass(frozen=True)
class BridgeSettings:
    """Bridge settings."""
    ports: tuple[str, ...] = ()


@dataclass(frozen=True)
class VlanSettings:
    """802.1Q VLAN settings."""
    vlan_id: int
    parent_device: str


@dataclass(frozen=True)
class Interface:
    """A discovered network device and its observed status."""
    name: str
    type: InterfaceType = InterfaceType.ETHERNET
    description: str = ""
    mac: Optional[str] = None
    driver: Optional[str] = None
    link: bool = False
    status: InterfaceStatus = InterfaceStatus.IDLE
    error: Optional[str] = None
    virtual: bool = False
    id: str = field(default_factory=generate_id, compare=False)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        data["status"] = self.status.value
        return data


def combined_boot_proto(ipv4: IPConfig, ipv6: IPConfig) -> BootProtocol:
    """Fold both families into the single BOOTPROTO value of an ifcfg file."""
    ipv4_dhcp = ipv4.boot_proto == BootProtocol.DHCP
    ipv6_dhcp = ipv6.boot_proto == BootProtocol.DHCP

    if ipv4_dhcp and ipv6_dhcp:
        return BootProtocol.DHCP
    elif ipv4_dhcp:
        return BootProtocol.DHCP4
    elif ipv6_dhcp:
        return BootProtocol.DHCP6
    elif ipv4.addresses or ipv6.addresses:
        return BootProtocol.STATIC
    else:
        return BootProtocol.NONE


@dataclass(frozen=True)
class Connection:
    """How an interface should be configured."""
    name: str
    description: str = ""
    type: InterfaceType = InterfaceType.ETHERNET
    start_mode: StartMode = StartMode.OFF
    mtu: Optional[int] = None
    ipv4: IPConfig = field(default_factory=IPConfig)
    ipv6: IPConfig = field(default_factory=IPConfig)
    used_by: Optional[str] = None
    bond: Optional[BondSettings] = None
    bridge: Optional[BridgeSettings] = None
    vlan: Optional[VlanSettings] = None
    exists: bool = False
    id: str = field(default_factory=generate_id, compare=False)

    @property
    def virtual(self) -> bool:
        return self.type.is_virtual

    @property
    def boot_proto(self) -> BootProtocol:
        return combined_boot_proto(self.ipv4, self.ipv6)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "start_mode": self.start_mode.value,
            "mtu": self.mtu,
            "ipv4": self.ipv4.to_dict(),
            "ipv6": self.ipv6.to_dict(),
            "used_by": self.used_by,
            "bond": asdict(self.bond) if self.bond else None,
            "bridge": asdict(self.bridge) if self.bridge else None,
            "vlan": asdict(self.vlan) if self.vlan else None,
            "exists": self.exists,
            "virtual": self.virtual,
        }


@dataclass(frozen=True)
class Route:
    """A static route as stored in ifroute/routes files."""
    destination: Optional[str] = None
    gateway: Optional[str] = None
    netmask: Optional[str] = None
    device: Optional[str] = None
    options: Optional[str] = None
    id: str = field(default_factory=generate_id, compare=False)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class NetworkState:
    """Immutable snapshot held by the store."""
    interfaces: Mapping[str, Interface] = field(default_factory=dict)
    connections: Mapping[str, Connection] = field(default_factory=dict)
    routes: Mapping[str, Route] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "interfaces": [i.to_dict() for i in self.interfaces.values()],
            "connections": [c.to_dict() for c in self.connections.values()],
            "routes": [r.to_dict() for r in self.routes.values()],
        }


@dataclass
class ValidationResult:
    """Result of form-level validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
