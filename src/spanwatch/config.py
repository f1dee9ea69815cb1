"""Configuration parsing for spanwatch.

Parses .spanwatch/config.toml files for trace storage, session and logging
settings. Environment variables override the file:

    SPANWATCH_KNOWLEDGE_DIR  knowledge root (traces live under <root>/traces)
    SPANWATCH_LOG_LEVEL      logging level name
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_DIRNAME = ".spanwatch"
CONFIG_FILENAME = "config.toml"
DEFAULT_KNOWLEDGE_ROOT = "knowledge"

KNOWLEDGE_DIR_ENV = "SPANWATCH_KNOWLEDGE_DIR"
LOG_LEVEL_ENV = "SPANWATCH_LOG_LEVEL"

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass
class TracesConfig:
    """Configuration for span persistence."""

    knowledge_root: Path = field(default_factory=lambda: Path(DEFAULT_KNOWLEDGE_ROOT))


@dataclass
class SessionConfig:
    """Configuration for the session event log."""

    max_tool_calls: int | None = None  # None keeps every call


@dataclass
class LoggingConfig:
    """Configuration for log output."""

    level: str = "INFO"
    file: Path | None = None  # stderr when unset


@dataclass
class Config:
    """Main configuration container."""

    version: str = "1"
    traces: TracesConfig = field(default_factory=TracesConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    config_path: Path | None = None

    @classmethod
    def load(cls, path: Path | None = None) -> Config:
        """Load configuration from a file.

        Args:
            path: Path to config file. If None, searches for
                  .spanwatch/config.toml in current directory and parents.

        Returns:
            Loaded configuration with environment overrides applied.

        Raises:
            FileNotFoundError: If no config file found.
            ValueError: If config file is invalid.
        """
        if path is None:
            path = cls._find_config()

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ValueError(f"Invalid TOML in {path}: {e}") from e

        return cls._from_dict(data, path)._apply_env()

    @classmethod
    def load_or_default(cls, path: Path | None = None) -> Config:
        """Load configuration or return default if not found."""
        try:
            return cls.load(path)
        except FileNotFoundError:
            return cls()._apply_env()

    @classmethod
    def _find_config(cls) -> Path:
        """Find config file by searching current directory and parents."""
        cwd = Path.cwd()
        for parent in [cwd, *cwd.parents]:
            config_path = parent / CONFIG_DIRNAME / CONFIG_FILENAME
            if config_path.exists():
                return config_path

        # Return expected path even if it doesn't exist
        return cwd / CONFIG_DIRNAME / CONFIG_FILENAME

    @classmethod
    def _from_dict(cls, data: dict[str, Any], path: Path) -> Config:
        """Create a Config from a dictionary."""
        version = str(data.get("spanwatch", {}).get("version", "1"))

        # Relative paths are anchored at the project root (parent of .spanwatch/)
        base_dir = path.parent.parent if path.parent.name == CONFIG_DIRNAME else path.parent

        traces_data = data.get("traces", {})
        knowledge_root = Path(traces_data.get("knowledge_root", DEFAULT_KNOWLEDGE_ROOT))
        if not knowledge_root.is_absolute():
            knowledge_root = base_dir / knowledge_root
        traces = TracesConfig(knowledge_root=knowledge_root)

        session_data = data.get("session", {})
        max_tool_calls = session_data.get("max_tool_calls")
        if max_tool_calls is not None and (
            isinstance(max_tool_calls, bool)
            or not isinstance(max_tool_calls, int)
            or max_tool_calls < 1
        ):
            raise ValueError(
                f"session.max_tool_calls must be a positive integer, got {max_tool_calls!r}"
            )
        session = SessionConfig(max_tool_calls=max_tool_calls)

        logging_data = data.get("logging", {})
        level = _validate_level(logging_data.get("level", "INFO"))
        log_file = logging_data.get("file")
        if log_file is not None:
            log_file = Path(log_file)
            if not log_file.is_absolute():
                log_file = base_dir / log_file

        return cls(
            version=version,
            traces=traces,
            session=session,
            logging=LoggingConfig(level=level, file=log_file),
            config_path=path,
        )

    def _apply_env(self) -> Config:
        """Apply environment variable overrides in place."""
        knowledge_dir = os.environ.get(KNOWLEDGE_DIR_ENV)
        if knowledge_dir:
            self.traces.knowledge_root = Path(knowledge_dir)

        level = os.environ.get(LOG_LEVEL_ENV)
        if level:
            self.logging.level = _validate_level(level)

        return self

    def get_value(self, key_path: str) -> Any:
        """Get a configuration value by dot-separated path.

        Args:
            key_path: Dot-separated path to value (e.g. "traces.knowledge_root").

        Returns:
            The configuration value.

        Raises:
            KeyError: If path is invalid.
        """
        parts = key_path.split(".")
        current = self
        for part in parts:
            if hasattr(current, part):
                current = getattr(current, part)
            elif isinstance(current, dict) and part in current:
                current = current[part]
            else:
                raise KeyError(f"Invalid config path: {key_path}")
        return current


def _validate_level(level: Any) -> str:
    name = str(level).upper()
    if name not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level}'. "
            f"Valid levels are: {', '.join(sorted(VALID_LOG_LEVELS))}"
        )
    return name
