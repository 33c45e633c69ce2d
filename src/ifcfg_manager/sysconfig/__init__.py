"""Sysconfig codec - translate between the model and on-disk network files.

Usage:
    from ifcfg_manager.sysconfig import encode_interface_config, decode_routes

    settings = encode_interface_config(connection)
    routes = decode_routes(text, device="eth0")
"""

from .parser import (
    RouteParser,
    SysconfigParser,
    decode_routes,
    sysconfig_to_payload,
)
from .generator import (
    boot_proto_for,
    encode_interface_config,
    encode_routes,
)
from .files import (
    DEFAULT_SYSCONFIG_DIR,
    IfcfgFile,
    IfrouteFile,
)

__all__ = [
    # Parsing
    "RouteParser",
    "SysconfigParser",
    "decode_routes",
    "sysconfig_to_payload",
    # Generation
    "boot_proto_for",
    "encode_interface_config",
    "encode_routes",
    # Files
    "DEFAULT_SYSCONFIG_DIR",
    "IfcfgFile",
    "IfrouteFile",
]
