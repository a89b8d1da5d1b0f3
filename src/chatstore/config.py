"""Configuration management for chatstore."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .storage.database import DEFAULT_PRAGMAS


def get_default_db_path() -> Path:
    """Return the default database path: ~/.chatstore/chat.db"""
    return Path.home() / ".chatstore" / "chat.db"


@dataclass
class StorageConfig:
    """Data file location and engine tuning directives."""

    db_path: Optional[str] = None
    pragmas: List[str] = field(default_factory=lambda: list(DEFAULT_PRAGMAS))

    def resolved_path(self) -> str:
        """Return db_path with ``~`` expanded, or the default path."""
        if self.db_path is None:
            return str(get_default_db_path())
        if self.db_path == ":memory:" or self.db_path.startswith("file:"):
            return self.db_path
        return str(Path(self.db_path).expanduser())

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            'db_path': self.db_path,
            'pragmas': list(self.pragmas),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageConfig':
        """Create config from dictionary."""
        pragmas = data.get('pragmas') or DEFAULT_PRAGMAS
        return cls(
            db_path=data.get('db_path'),
            pragmas=[str(p) for p in pragmas],
        )


@dataclass
class LoggingConfig:
    """Logging configuration for the chatstore logger."""

    level: str = 'INFO'
    format: str = '%(asctime)s %(levelname)s %(name)s: %(message)s'

    def apply(self) -> None:
        """Install a root handler and set the chatstore logger level."""
        logging.basicConfig(format=self.format)
        logging.getLogger('chatstore').setLevel(self.level.upper())

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            'level': self.level,
            'format': self.format,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LoggingConfig':
        """Create config from dictionary."""
        defaults = cls()
        return cls(
            level=data.get('level', defaults.level),
            format=data.get('format', defaults.format),
        )


class ChatStoreConfig:
    """Main chatstore configuration."""

    # Default config file locations (in priority order)
    CONFIG_SEARCH_PATHS = [
        './chatstore.yaml',
        './chatstore.json',
        '~/.chatstore/config.yaml',
        '~/.chatstore/config.json',
    ]

    ENV_VAR = 'CHATSTORE_CONFIG_PATH'

    def __init__(
        self,
        storage: Optional[StorageConfig] = None,
        logging: Optional[LoggingConfig] = None,
    ):
        self.storage = storage or StorageConfig()
        self.logging = logging or LoggingConfig()

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> 'ChatStoreConfig':
        """
        Load configuration from file.

        Search order:
        1. Explicit config_path parameter
        2. CHATSTORE_CONFIG_PATH environment variable
        3. Default search paths (project, user home)

        Args:
            config_path: Optional explicit path to config file

        Returns:
            ChatStoreConfig instance
        """
        if config_path:
            return cls._load_from_file(config_path)

        env_path = os.getenv(cls.ENV_VAR)
        if env_path and Path(env_path).exists():
            return cls._load_from_file(env_path)

        for path_str in cls.CONFIG_SEARCH_PATHS:
            path = Path(path_str).expanduser()
            if path.exists():
                return cls._load_from_file(str(path))

        return cls()

    @classmethod
    def _load_from_file(cls, filepath: str) -> 'ChatStoreConfig':
        """Load configuration from a specific file."""
        path = Path(filepath)

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {filepath}")

        with open(path, 'r') as f:
            content = f.read()

        if path.suffix in ['.yaml', '.yml']:
            data = yaml.safe_load(content)
        elif path.suffix == '.json':
            data = json.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChatStoreConfig':
        """Create config from dictionary."""
        return cls(
            storage=StorageConfig.from_dict(data.get('storage', {})),
            logging=LoggingConfig.from_dict(data.get('logging', {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            'storage': self.storage.to_dict(),
            'logging': self.logging.to_dict(),
        }

    def save(self, filepath: str) -> None:
        """
        Save configuration to file.

        Args:
            filepath: Path to save config file
        """
        path = Path(filepath)
        data = self.to_dict()

        if path.suffix in ['.yaml', '.yml']:
            with open(path, 'w') as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        elif path.suffix == '.json':
            with open(path, 'w') as f:
                json.dump(data, f, indent=2)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
