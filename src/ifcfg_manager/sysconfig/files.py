"""Access to the sysconfig network files on disk.

Files handled:
    /etc/sysconfig/network/
    ├── ifcfg-<name>      # Interface configuration
    ├── ifroute-<name>    # Static routes for one interface
    └── routes            # Global static routes
"""
import logging
from pathlib import Path
from typing import Iterable, Optional

from ..model.schema import Connection, Route
from .generator import encode_interface_config, encode_routes
from .parser import SysconfigParser, decode_routes

logger = logging.getLogger(__name__)

DEFAULT_SYSCONFIG_DIR = Path("/etc/sysconfig/network")

IFCFG_PREFIX = "ifcfg-"
IFROUTE_PREFIX = "ifroute-"
GLOBAL_ROUTES_FILE = "routes"

# Leftovers from editors and package managers
BACKUP_SUFFIXES = ("~", ".bak", ".old", ".orig", ".rpmnew", ".rpmsave", ".tmp")


def _is_backup(path: Path) -> bool:
    return path.name.endswith(BACKUP_SUFFIXES)


def _write(path: Path, content: str) -> None:
    """Replace a file through a temporary sibling so readers never see half of it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_text(content)
    tmp_path.replace(path)


class IfcfgFile:
    """An ``ifcfg-<name>`` interface configuration file."""

    def __init__(self, name: str, base_dir: Optional[Path] = None):
        self.name = name
        self.base_dir = Path(base_dir) if base_dir else DEFAULT_SYSCONFIG_DIR
        self.parser = SysconfigParser()

    @property
    def path(self) -> Path:
        return self.base_dir / f"{IFCFG_PREFIX}{self.name}"

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> dict[str, str]:
        """Read the file; a missing file reads as empty."""
        if not self.path.exists():
            return {}
        return self.parser.parse(self.path.read_text())

    def update(self, connection: Connection) -> None:
        """Rewrite the file from the connection."""
        content = self.parser.stringify(encode_interface_config(connection))
        _write(self.path, content)
        logger.info(f"Wrote {self.path}")

    def remove(self) -> bool:
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info(f"Removed {self.path}")
        return True

    @classmethod
    def list_names(cls, base_dir: Optional[Path] = None) -> list[str]:
        """Names of all configured interfaces, sorted."""
        base_dir = Path(base_dir) if base_dir else DEFAULT_SYSCONFIG_DIR
        if not base_dir.is_dir():
            return []
        return sorted(
            p.name[len(IFCFG_PREFIX):]
            for p in base_dir.glob(f"{IFCFG_PREFIX}*")
            if p.is_file() and not _is_backup(p)
        )


class IfrouteFile:
    """A static routes file: ``ifroute-<device>`` or the global ``routes``."""

    def __init__(self, device: Optional[str] = None, base_dir: Optional[Path] = None):
        self.device = device
        self.base_dir = Path(base_dir) if base_dir else DEFAULT_SYSCONFIG_DIR

    @property
    def path(self) -> Path:
        if self.device:
            return self.base_dir / f"{IFROUTE_PREFIX}{self.device}"
        return self.base_dir / GLOBAL_ROUTES_FILE

    def read(self) -> list[Route]:
        """Read routes; routes without a device get this file's device."""
        if not self.path.exists():
            return []
        return decode_routes(self.path.read_text(), self.device)

    def update(self, routes: Iterable[Route]) -> None:
        content = encode_routes(routes)
        _write(self.path, f"{content}\n" if content else "")
        logger.info(f"Wrote {self.path}")

    def remove(self) -> bool:
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info(f"Removed {self.path}")
        return True

    @classmethod
    def list_devices(cls, base_dir: Optional[Path] = None) -> list[str]:
        """Devices that have an ``ifroute-<device>`` file, sorted."""
        base_dir = Path(base_dir) if base_dir else DEFAULT_SYSCONFIG_DIR
        if not base_dir.is_dir():
            return []
        return sorted(
            p.name[len(IFROUTE_PREFIX):]
            for p in base_dir.glob(f"{IFROUTE_PREFIX}*")
            if p.is_file() and not _is_backup(p)
        )
