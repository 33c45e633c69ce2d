"""Form-level validation for connection settings.

Catches invalid input before anything is dispatched to the store.
"""
import ipaddress
import re
from typing import Iterable, Optional, Sequence

from .schema import (
    Address,
    BootProtocol,
    Connection,
    InterfaceType,
    ValidationResult,
)

DOMAIN_PATTERN = re.compile(r"^([a-z0-9]+(-[a-z0-9]+)*\.)+[a-z]{2,}$", re.I)

# Interface names are limited by IFNAMSIZ (16 including the NUL byte)
INTERFACE_NAME_PATTERN = re.compile(r"^[^\s/:]{1,15}$")

MIN_MTU = 68
MAX_MTU = 65535


def is_valid_ip(value: str) -> bool:
    """Check an IPv4/IPv6 address, with or without a prefix length."""
    try:
        if "/" in value:
            ipaddress.ip_interface(value)
        else:
            ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_valid_domain(value: str) -> bool:
    return bool(DOMAIN_PATTERN.match(value))


def sanitize_addresses(addresses: Iterable[Address]) -> list[Address]:
    """Drop entries without an IP and duplicated (local, label) pairs.

    The first occurrence of a duplicate wins.
    """
    seen: set[tuple[str, str]] = set()
    result = []

    for address in addresses:
        if not address.local or not address.local.strip():
            continue
        key = (address.local, address.label)
        if key in seen:
            continue
        seen.add(key)
        result.append(address)

    return result


def find_invalid_ip(addresses: Iterable[Address]) -> Optional[Address]:
    return next((a for a in addresses if not is_valid_ip(a.local)), None)


def find_repeated_label(addresses: Iterable[Address]) -> Optional[Address]:
    """Return the first address reusing a non-empty label."""
    labels: set[str] = set()
    for address in addresses:
        if not address.label:
            continue
        if address.label in labels:
            return address
        labels.add(address.label)
    return None


def validate_ip_settings(
    boot_proto: BootProtocol,
    addresses: Sequence[Address],
) -> ValidationResult:
    """
    Validate the IP settings of one family.

    Args:
        boot_proto: Selected boot protocol
        addresses: Addresses, already sanitized with sanitize_addresses()

    Returns:
        ValidationResult with one message per kind of problem
    """
    errors: list[str] = []

    if boot_proto == BootProtocol.STATIC and not addresses:
        errors.append(
            "At least one address must be provided when using the "
            f'"{BootProtocol.STATIC.label}" boot protocol'
        )

    if find_invalid_ip(addresses):
        errors.append("There are invalid IPs")

    if find_repeated_label(addresses):
        errors.append("There are repeated labels")

    return ValidationResult(valid=not errors, errors=errors)


def validate_connection(connection: Connection) -> ValidationResult:
    """Validate a whole connection before it is added or updated."""
    errors: list[str] = []
    warnings: list[str] = []

    if not INTERFACE_NAME_PATTERN.match(connection.name or ""):
        errors.append(f"Invalid interface name: '{connection.name}'")

    if connection.mtu is not None and not MIN_MTU <= connection.mtu <= MAX_MTU:
        errors.append(
            f"Invalid MTU {connection.mtu}: must be between {MIN_MTU} and {MAX_MTU}"
        )

    for family in ("ipv4", "ipv6"):
        settings = getattr(connection, family)
        result = validate_ip_settings(settings.boot_proto, settings.addresses)
        errors.extend(f"{family.upper()}: {e}" for e in result.errors)

    if connection.type == InterfaceType.VLAN:
        if connection.vlan is None:
            errors.append("VLAN settings are missing")
        else:
            if not 1 <= connection.vlan.vlan_id <= 4094:
                errors.append(
                    f"Invalid VLAN ID {connection.vlan.vlan_id}: must be between 1 and 4094"
                )
            if connection.vlan.parent_device == connection.name:
                errors.append("A VLAN cannot use itself as parent device")

    if connection.type == InterfaceType.BONDING:
        interfaces = connection.bond.interfaces if connection.bond else ()
        if connection.name in interfaces:
            errors.append("A bond cannot include itself")
        if not interfaces:
            warnings.append(f"Bond {connection.name} has no interfaces")

    if connection.type == InterfaceType.BRIDGE:
        ports = connection.bridge.ports if connection.bridge else ()
        if connection.name in ports:
            errors.append("A bridge cannot include itself as a port")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
