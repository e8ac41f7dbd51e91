"""Configuration system for fps-monitor."""

import sys
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from fps_monitor.layout import MAHM_REGION_NAME

VALID_LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class RegionConfig:
    """Shared memory region and polling configuration."""

    name: str = MAHM_REGION_NAME  # Name of the mapping published by the monitor
    shm_dir: str = ""  # Directory of file-backed regions ("" = platform default)
    poll_interval: float = 1.0  # Seconds between captures

    @property
    def shm_path(self) -> Path | None:
        """Directory for file-backed regions, or None for the platform default."""
        return Path(self.shm_dir).expanduser() if self.shm_dir else None


@dataclass
class ServerConfig:
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    replace_existing: bool = True  # Terminate a previous instance on startup


@dataclass
class LoggingConfig:
    """Log level and file rotation."""

    level: str = "info"
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    region: RegionConfig = field(default_factory=RegionConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "fps-monitor"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "fps-monitor"

    @property
    def runtime_dir(self) -> Path:
        """Runtime directory for the PID file."""
        if sys.platform == "win32":
            return self.state_dir
        return Path("/tmp/fps-monitor")

    @property
    def log_path(self) -> Path:
        """Daemon log path."""
        return self.state_dir / "daemon.log"

    @property
    def pid_path(self) -> Path:
        """PID file path."""
        return self.runtime_dir / "daemon.pid"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("region", "server", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() of an empty file are identical.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            region=_load_region_config(data.get("region", {})),
            server=_load_server_config(data.get("server", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_region_config(data: dict) -> RegionConfig:
    """Load region config from TOML data."""
    defaults = RegionConfig()

    name = str(data.get("name", defaults.name))
    poll_interval = float(data.get("poll_interval", defaults.poll_interval))

    if not name:
        raise ValueError("region.name must not be empty")
    if poll_interval <= 0:
        raise ValueError(f"poll_interval must be > 0, got {poll_interval}")

    return RegionConfig(
        name=name,
        shm_dir=str(data.get("shm_dir", defaults.shm_dir)),
        poll_interval=poll_interval,
    )


def _load_server_config(data: dict) -> ServerConfig:
    """Load server config from TOML data."""
    defaults = ServerConfig()

    port = int(data.get("port", defaults.port))
    if not 1 <= port <= 65535:
        raise ValueError(f"port must be between 1 and 65535, got {port}")

    return ServerConfig(
        host=str(data.get("host", defaults.host)),
        port=port,
        replace_existing=bool(data.get("replace_existing", defaults.replace_existing)),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    defaults = LoggingConfig()

    level = str(data.get("level", defaults.level)).lower()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}. Must be one of {VALID_LOG_LEVELS}")

    return LoggingConfig(
        level=level,
        log_max_bytes=int(data.get("log_max_bytes", defaults.log_max_bytes)),
        log_backup_count=int(data.get("log_backup_count", defaults.log_backup_count)),
    )
