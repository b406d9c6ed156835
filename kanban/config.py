# Kanban engine — configuration
# Override paths and defaults via kanban.yaml or environment variables.

import logging
import os
import sys
import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import ConfigError
from .schema import DEFAULT_STAGES

CONFIG_PATH = Path.home() / ".config" / "kanban" / "kanban.yaml"

LOG_FORMAT = "%(asctime)s [kanban] %(levelname)s: %(message)s"


@dataclass
class Config:
    """Runtime configuration for the kanban engine."""

    # Storage
    db_path: str = "~/.local/share/kanban/kanban.db"
    busy_timeout_ms: int = 5000

    # New projects start with this pipeline
    default_stages: List[str] = field(default_factory=lambda: list(DEFAULT_STAGES))

    # Logging
    log_level: str = "INFO"

    # JSON API
    server_host: str = "127.0.0.1"
    server_port: int = 3000

    def resolve_paths(self):
        """Expand ~ in filesystem paths."""
        if self.db_path != ":memory:":
            self.db_path = str(Path(self.db_path).expanduser())

    def apply_env(self):
        """Environment variables win over file values."""
        if os.environ.get("KANBAN_DB"):
            self.db_path = os.environ["KANBAN_DB"]
        if os.environ.get("KANBAN_LOG_LEVEL"):
            self.log_level = os.environ["KANBAN_LOG_LEVEL"]

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read config {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"Config {cfg_path} must be a mapping")
            cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        else:
            cfg = cls()
        cfg.apply_env()
        cfg.resolve_paths()
        return cfg


def configure_logging(config: Config) -> None:
    """Send engine logs to stdout at the configured level."""
    level = getattr(logging, str(config.log_level).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
