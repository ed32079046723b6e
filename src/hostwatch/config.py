"""Runtime configuration for hostwatch."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

logger = logging.getLogger(__name__)

MIN_INTERVAL = 0.1  # seconds

ENV_PREFIX = "HOSTWATCH_"


def parse_log_level(raw: str) -> str:
    """Upper-cased level name, ValueError when logging does not know it."""
    level = raw.strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"unknown log level {raw!r}")
    return level


@dataclass(slots=True)
class SamplerConfig:
    """Source roots, per-domain cadences (seconds) and history size."""

    proc_root: Path = field(default_factory=lambda: Path("/proc"))
    sys_root: Path = field(default_factory=lambda: Path("/sys"))
    cpu_interval: float = 0.5
    process_interval: float = 1.0
    disk_interval: float = 5.0
    interface_interval: float = 5.0
    connection_interval: float = 3.0
    port_interval: float = 5.0
    history_size: int = 100
    log_level: str = "WARNING"
    log_file: str = "hostwatch.log"

    def __post_init__(self) -> None:
        self.proc_root = Path(self.proc_root)
        self.sys_root = Path(self.sys_root)
        for f in fields(self):
            if f.name.endswith("_interval"):
                setattr(self, f.name, max(MIN_INTERVAL, float(getattr(self, f.name))))
        self.history_size = max(1, int(self.history_size))

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "SamplerConfig":
        """
        Build a config from ``HOSTWATCH_*`` environment variables.

        For example ``HOSTWATCH_CPU_INTERVAL=1.0`` or
        ``HOSTWATCH_PROC_ROOT=/host/proc``. Values that cannot be converted
        are ignored with a warning.
        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            try:
                if f.name.endswith("_interval"):
                    overrides[f.name] = float(raw)
                elif f.name == "history_size":
                    overrides[f.name] = int(raw)
                elif f.name.endswith("_root"):
                    overrides[f.name] = Path(raw)
                elif f.name == "log_level":
                    overrides[f.name] = parse_log_level(raw)
                else:
                    overrides[f.name] = raw
            except ValueError:
                logger.warning("Ignoring invalid %s%s=%r", ENV_PREFIX, f.name.upper(), raw)
        return cls(**overrides)
