"""
Configuration management for docrepo.

Holds the process-wide configuration shared by every repository:
- ConnectionSettings: where the database lives (environment driven)
- RunOptions: default run-time options applied to every query
- Configuration: the bound adapter plus run options

Repositories read the configuration once, when their class is defined.

Invariants:
    - All settings have sensible defaults for local development
    - configure() creates the shared configuration at most once
    - get_config() falls back to a local RethinkDB adapter when nothing is
      configured, unless auto configuration is disabled

How to change safely:
    - Configure before defining repository classes; later changes do not
      re-bind repositories that already exist
    - configure() is not meant to race with repository definitions

Example:
    >>> from docrepo import configure, RethinkDbAdapter
    >>> configure(lambda c: setattr(c, "adapter", RethinkDbAdapter(database="blog")))
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings

if TYPE_CHECKING:
    from .adapter.base import Adapter

logger = logging.getLogger(__name__)

_config: Optional[Configuration] = None
_config_lock = threading.RLock()


class ConnectionSettings(BaseSettings):
    """Database connection configuration."""

    host: str = Field(default="localhost")
    port: int = Field(default=28015)
    database: str = Field(default="test")
    user: str = Field(default="admin")
    password: str = Field(default="")
    timeout: int = Field(default=20, description="Connect timeout in seconds")

    # Fall back to a local adapter when nothing was configured
    auto_configure: bool = Field(default=True)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="text or json")

    model_config = {"env_prefix": "DOCREPO_"}

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class RunOptions:
    """Run-time options passed with every query.

    Attributes:
        read_mode: Replica read mode (single, majority, outdated)
        time_format: How times are returned (native, raw)
        profile: Whether to return query profiles
        durability: Write durability (hard, soft)
        group_format: How grouped data is returned (native, raw)
        noreply: Fire-and-forget writes
    """

    read_mode: str = "single"
    time_format: str = "native"
    profile: bool = False
    durability: str = "hard"
    group_format: str = "native"
    noreply: bool = False

    def to_run_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for the driver's ``run``."""
        return {
            "read_mode": self.read_mode,
            "time_format": self.time_format,
            "profile": self.profile,
            "durability": self.durability,
            "group_format": self.group_format,
            "noreply": self.noreply,
        }


@dataclass
class Configuration:
    """Shared repository configuration.

    Attributes:
        adapter: Query executor bound to new repository classes
        run_options: Default run options for adapters without their own
    """

    adapter: Optional[Adapter] = None
    run_options: RunOptions = field(default_factory=RunOptions)


def configure(block: Optional[Callable[[Configuration], Any]] = None) -> Configuration:
    """Create the shared configuration if needed and apply ``block`` to it.

    Args:
        block: Callable receiving the Configuration to mutate

    Returns:
        The shared Configuration

    Raises:
        TypeError: If no callable block is given
    """
    global _config
    if block is None or not callable(block):
        raise TypeError("Missing config block")

    with _config_lock:
        if _config is None:
            _config = Configuration()
        block(_config)

        if _config.adapter is not None and _config.adapter.run_options is None:
            _config.adapter.run_options = _config.run_options

        logger.info(
            "docrepo configured",
            extra={"adapter": type(_config.adapter).__name__ if _config.adapter else None},
        )
        return _config


def get_config() -> Optional[Configuration]:
    """Get the shared configuration, auto-configuring on first use.

    Returns:
        The Configuration, or None when nothing is configured and auto
        configuration is disabled
    """
    with _config_lock:
        if _config is None:
            settings = ConnectionSettings()
            if not settings.auto_configure:
                return None
            auto_configure(settings)
        return _config


def auto_configure(settings: Optional[ConnectionSettings] = None) -> Configuration:
    """Configure a RethinkDB adapter for the default local server.

    The adapter connects lazily, on its first query.
    """
    from .adapter.rethink import RethinkDbAdapter

    settings = settings or ConnectionSettings()
    logger.info(f"Auto-configuring RethinkDB adapter for {settings.address}/{settings.database}")

    def apply(config: Configuration) -> None:
        config.adapter = RethinkDbAdapter(database=settings.database, settings=settings)

    return configure(apply)


def reset_config() -> None:
    """Reset the shared configuration (for testing only)."""
    global _config
    with _config_lock:
        _config = None


def setup_logging(settings: Optional[ConnectionSettings] = None) -> None:
    """Configure logging based on settings.

    Args:
        settings: Connection settings (loaded from env if not provided)
    """
    settings = settings or ConnectionSettings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from the driver
    logging.getLogger("rethinkdb").setLevel(logging.WARNING)
