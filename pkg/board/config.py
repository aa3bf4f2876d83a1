# Kanban board: configuration
# Override storage and server settings via board.yaml or environment variables.

import logging
import os
import yaml
from pathlib import Path
from dataclasses import dataclass, fields
from typing import Optional

from .schema import BoardError

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent / "board.yaml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(BoardError):
    """Raised when configuration values are invalid."""
    pass


@dataclass
class BoardConfig:
    """Runtime configuration for the board server."""

    # Storage
    storage: str = "json"          # "json" | "sqlite"
    data_path: str = ""            # empty = backend default under ~/.local/share

    # Server
    host: str = "127.0.0.1"
    port: int = 3000

    # Logging
    log_level: str = "INFO"

    def apply_env(self):
        """Environment variables win over the YAML file."""
        self.storage = os.environ.get("KANBAN_STORAGE", self.storage)
        self.data_path = os.environ.get("KANBAN_DB", self.data_path)
        self.log_level = os.environ.get("KANBAN_LOG_LEVEL", self.log_level)

    def validate(self):
        self.storage = str(self.storage).strip().lower()
        if self.storage not in ("json", "sqlite"):
            raise ConfigError(f"storage must be 'json' or 'sqlite', got {self.storage!r}")
        self.log_level = str(self.log_level).strip().upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}")
        try:
            self.port = int(self.port)
        except (TypeError, ValueError):
            raise ConfigError(f"port must be an integer, got {self.port!r}")
        if self.data_path:
            self.data_path = str(Path(self.data_path).expanduser())

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults."""
        path = path or os.environ.get("KANBAN_CONFIG")
        cfg_path = Path(path).expanduser() if path else CONFIG_PATH
        known = {f.name for f in fields(cls)}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except (OSError, yaml.YAMLError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable config {cfg_path}: {e}")
                cfg = cls()
        else:
            cfg = cls()
        cfg.apply_env()
        cfg.validate()
        return cfg
