"""Runtime settings for ifcfg-manager.

Settings come from a YAML file and can be overridden with environment
variables.

Environment variables:
- IFCFG_MANAGER_CONFIG: Path to the settings file
- IFCFG_MANAGER_SYSCONFIG_DIR: Directory holding ifcfg/ifroute files
- IFCFG_MANAGER_SYSFS_DIR: Directory listing network devices
- IFCFG_MANAGER_WICKED: wicked executable
- IFCFG_MANAGER_SYSTEMCTL: systemctl executable
- IFCFG_MANAGER_SERVICE: Service checked by is_active (default: wicked)
- IFCFG_MANAGER_COMMAND_TIMEOUT: Seconds before a backend command is killed
- IFCFG_MANAGER_COMMAND_RETRIES: Attempts for commands that fail to start
- IFCFG_MANAGER_POLL_INTERVAL: Seconds between interface change checks
- IFCFG_MANAGER_IGNORED_INTERFACES: Comma-separated interface names to hide
- IFCFG_MANAGER_LOG_LEVEL: Console log level (default: INFO)
- IFCFG_MANAGER_LOG_FILE: Main log file (default: ~/.ifcfg-manager/ifcfg-manager.log)
- IFCFG_MANAGER_LOG_MAX_SIZE: Log file size in MB before rotation (default: 10)
- IFCFG_MANAGER_LOG_BACKUPS: Rotated log files to keep (default: 5)
"""
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from ..sysconfig.files import DEFAULT_SYSCONFIG_DIR

logger = logging.getLogger(__name__)

DEFAULT_SYSFS_DIR = Path("/sys/class/net")

ENV_PREFIX = "IFCFG_MANAGER_"


def _default_log_file() -> Path:
    return Path.home() / ".ifcfg-manager" / "ifcfg-manager.log"


@dataclass
class Settings:
    """Backend and runtime settings."""
    sysconfig_dir: Path = DEFAULT_SYSCONFIG_DIR
    sysfs_dir: Path = DEFAULT_SYSFS_DIR
    wicked_command: str = "wicked"
    systemctl_command: str = "systemctl"
    service_name: str = "wicked"
    command_timeout: float = 60.0
    command_retries: int = 3
    poll_interval: float = 2.0
    ignored_interfaces: list[str] = field(default_factory=lambda: ["lo"])
    log_level: str = "INFO"
    log_file: Path = field(default_factory=_default_log_file)
    log_max_size_mb: int = 10
    log_backups: int = 5

    def __post_init__(self) -> None:
        self.sysconfig_dir = Path(self.sysconfig_dir)
        self.sysfs_dir = Path(self.sysfs_dir)
        self.log_file = Path(self.log_file).expanduser()
        if self.command_retries < 1:
            raise ValueError("command_retries must be at least 1")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

    @classmethod
    def from_env(cls, base: Optional["Settings"] = None) -> "Settings":
        """Load settings from environment variables on top of ``base``."""
        values = _as_dict(base or cls())

        env_map = {
            "SYSCONFIG_DIR": ("sysconfig_dir", Path),
            "SYSFS_DIR": ("sysfs_dir", Path),
            "WICKED": ("wicked_command", str),
            "SYSTEMCTL": ("systemctl_command", str),
            "SERVICE": ("service_name", str),
            "COMMAND_TIMEOUT": ("command_timeout", float),
            "COMMAND_RETRIES": ("command_retries", int),
            "POLL_INTERVAL": ("poll_interval", float),
            "LOG_LEVEL": ("log_level", str),
            "LOG_FILE": ("log_file", Path),
            "LOG_MAX_SIZE": ("log_max_size_mb", int),
            "LOG_BACKUPS": ("log_backups", int),
        }
        for suffix, (name, convert) in env_map.items():
            raw = os.environ.get(f"{ENV_PREFIX}{suffix}")
            if raw:
                values[name] = convert(raw)

        ignored = os.environ.get(f"{ENV_PREFIX}IGNORED_INTERFACES")
        if ignored is not None:
            values["ignored_interfaces"] = [i.strip() for i in ignored.split(",") if i.strip()]

        return cls(**values)

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        """Load settings from a YAML file; a missing file yields defaults."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Settings file not found: {path}")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        known = {f.name for f in fields(cls)}
        for key in set(data) - known:
            logger.warning(f"Ignoring unknown setting '{key}' in {path}")

        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Settings":
        """Load from file (explicit, IFCFG_MANAGER_CONFIG or search paths), then env."""
        path = path or _find_config()
        base = cls.from_file(path) if path else cls()
        return cls.from_env(base)


def _as_dict(settings: Settings) -> dict[str, Any]:
    return {f.name: getattr(settings, f.name) for f in fields(settings)}


def _find_config() -> Optional[Path]:
    """Find the settings file, if any."""
    env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
    if env_path:
        return Path(env_path)

    search_paths = [
        Path.cwd() / "ifcfg-manager.yaml",
        Path.home() / ".config" / "ifcfg-manager" / "settings.yaml",
        Path("/etc/ifcfg-manager/settings.yaml"),
    ]
    for path in search_paths:
        if path.exists():
            return path

    return None
