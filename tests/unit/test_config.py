"""
Unit tests for configuration.

Tests cover:
- Connection settings from the environment
- Run options
- configure() / get_config() lifecycle
- Logging setup
"""

import logging

import json_log_formatter
import pytest

from docrepo.adapter.memory import MemoryAdapter
from docrepo.adapter.rethink import RethinkDbAdapter
from docrepo.config import (
    Configuration,
    ConnectionSettings,
    RunOptions,
    configure,
    get_config,
    setup_logging,
)


class TestConnectionSettings:
    """Tests for ConnectionSettings."""

    def test_defaults(self):
        """Defaults point at a local server."""
        settings = ConnectionSettings()
        assert settings.host == "localhost"
        assert settings.port == 28015
        assert settings.database == "test"
        assert settings.auto_configure is True
        assert settings.address == "localhost:28015"

    def test_from_env(self, monkeypatch):
        """Environment variables override defaults."""
        monkeypatch.setenv("DOCREPO_HOST", "db.internal")
        monkeypatch.setenv("DOCREPO_PORT", "29015")
        monkeypatch.setenv("DOCREPO_DATABASE", "blog")

        settings = ConnectionSettings()

        assert settings.host == "db.internal"
        assert settings.port == 29015
        assert settings.database == "blog"


class TestRunOptions:
    """Tests for RunOptions."""

    def test_defaults(self):
        """Default run options."""
        assert RunOptions().to_run_kwargs() == {
            "read_mode": "single",
            "time_format": "native",
            "profile": False,
            "durability": "hard",
            "group_format": "native",
            "noreply": False,
        }

    def test_frozen(self):
        """Run options are immutable."""
        with pytest.raises(AttributeError):
            RunOptions().durability = "soft"


class TestConfigure:
    """Tests for configure() and get_config()."""

    def test_requires_block(self, isolated_config):
        """configure() needs a callable."""
        with pytest.raises(TypeError, match="Missing config block"):
            configure()
        with pytest.raises(TypeError):
            configure("adapter")

    def test_applies_block(self, isolated_config):
        """The block mutates the shared configuration."""
        adapter = MemoryAdapter()

        config = configure(lambda c: setattr(c, "adapter", adapter))

        assert isinstance(config, Configuration)
        assert get_config() is config
        assert config.adapter is adapter

    def test_configuration_created_once(self, isolated_config):
        """Repeated configure() calls update the same object."""
        first = configure(lambda c: None)
        second = configure(lambda c: None)
        assert first is second

    def test_adapter_receives_run_options(self, isolated_config):
        """An adapter without run options gets the configured ones."""
        adapter = MemoryAdapter()
        options = RunOptions(durability="soft")

        def block(config):
            config.run_options = options
            config.adapter = adapter

        configure(block)

        assert adapter.run_options is options

    def test_adapter_keeps_own_run_options(self, isolated_config):
        """An adapter with run options keeps them."""
        own = RunOptions(noreply=True)
        adapter = MemoryAdapter(run_options=own)

        configure(lambda c: setattr(c, "adapter", adapter))

        assert adapter.run_options is own

    def test_auto_configure(self, isolated_config, monkeypatch):
        """Without configuration a lazy RethinkDB adapter is bound."""
        monkeypatch.delenv("DOCREPO_AUTO_CONFIGURE", raising=False)

        config = get_config()

        assert isinstance(config.adapter, RethinkDbAdapter)
        assert config.adapter.database == "test"
        assert config.adapter._connection is None

    def test_auto_configure_disabled(self, isolated_config, monkeypatch):
        """Disabled auto configuration leaves nothing configured."""
        monkeypatch.setenv("DOCREPO_AUTO_CONFIGURE", "false")
        assert get_config() is None


class TestSetupLogging:
    """Tests for setup_logging()."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers, root.level = handlers, level

    def test_text_format(self):
        """Text format uses a plain formatter."""
        setup_logging(ConnectionSettings(log_level="DEBUG"))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_json_format(self):
        """JSON format uses the JSON formatter."""
        setup_logging(ConnectionSettings(log_format="json"))

        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter, json_log_formatter.JSONFormatter)

    def test_quiets_driver(self):
        """The driver logger is raised to WARNING."""
        setup_logging(ConnectionSettings())
        assert logging.getLogger("rethinkdb").level == logging.WARNING
