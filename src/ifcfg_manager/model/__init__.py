"""Normalized network model and factories."""
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
    NetworkState,
    Route,
    StartMode,
    ValidationResult,
    VlanSettings,
    combined_boot_proto,
)
from .factory import (
    create_address_config,
    create_connection,
    create_interface,
    create_route,
    interface_changes,
    interface_name,
    merge_connection,
    placeholder_connection,
    type_from_payload,
)
from .validation import (
    is_valid_domain,
    is_valid_ip,
    sanitize_addresses,
    validate_connection,
    validate_ip_settings,
)

__all__ = [
    # Schema
    "Address",
    "BondSettings",
    "BondingMode",
    "BootProtocol",
    "BridgeSettings",
    "Connection",
    "IPConfig",
    "Interface",
    "InterfaceStatus",
    "InterfaceType",
    "NetworkState",
    "Route",
    "StartMode",
    "ValidationResult",
    "VlanSettings",
    "combined_boot_proto",
    # Factories
    "create_address_config",
    "create_connection",
    "create_interface",
    "create_route",
    "interface_changes",
    "interface_name",
    "merge_connection",
    "placeholder_connection",
    "type_from_payload",
    # Validation
    "is_valid_domain",
    "is_valid_ip",
    "sanitize_addresses",
    "validate_connection",
    "validate_ip_settings",
]
