"""
Tests for the CLI interface.
"""
import asyncio
import logging
import os
from unittest.mock import MagicMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from conftest import FakePortal
from ymobile_usage.app import build_app
from ymobile_usage.cli.main import app, EXIT_CODE_OK, EXIT_CODE_FAIL
from ymobile_usage.config.loader import AppSettings, CONFIG_ENV_VAR, WidgetPlatform, WidgetSettings
from ymobile_usage.log import LOGGER_NAME
from ymobile_usage.storage.models import Credentials, WidgetConfig
from ymobile_usage.storage.repository import MemoryKeyValueStore

runner = CliRunner()


@pytest.fixture
def usage_app(fernet_key):
    """App wired to an in-memory store and the fake portal."""
    settings = AppSettings(widget=WidgetSettings(platform=WidgetPlatform.ANDROID))
    portal = FakePortal(settings.portal)
    wired = build_app(
        settings,
        native=MagicMock(),
        store=MemoryKeyValueStore(),
        key=fernet_key,
        transport=portal.transport,
    )
    wired.portal = portal
    with patch('ymobile_usage.cli.main.get_app', return_value=wired):
        yield wired


def save_credentials(usage_app):
    asyncio.run(usage_app.credentials.save(Credentials("09012345678", "secret")))


class TestCLI:
    """Test CLI commands."""

    def test_start_restores_enabled_schedule(self, usage_app):
        result = runner.invoke(app, ["start"])

        assert result.exit_code == 0
        assert "scheduled" in result.output
        usage_app.bridge.native.scheduleUpdate.assert_called_once_with(15)

    def test_start_with_disabled_widget(self, usage_app):
        asyncio.run(usage_app.config_store.set(WidgetConfig(enabled=False)))

        result = runner.invoke(app, ["start"])

        assert "stopped" in result.output
        usage_app.bridge.native.scheduleUpdate.assert_not_called()

    def test_no_command_prints_hint(self, usage_app):
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert "--help" in result.output

    def test_login_saves_credentials(self, usage_app):
        result = runner.invoke(app, ["login", "--phone", "09012345678", "--password", "secret"])

        assert result.exit_code == EXIT_CODE_OK
        assert "090****5678" in result.output
        assert "09012345678" not in result.output
        stored = asyncio.run(usage_app.credentials.load())
        assert stored == Credentials("09012345678", "secret")

    def test_login_prompts(self, usage_app):
        result = runner.invoke(app, ["login"], input="09012345678\nsecret\nsecret\n")

        assert result.exit_code == EXIT_CODE_OK
        assert asyncio.run(usage_app.credentials.has_credentials())

    def test_login_rejects_empty_password(self, usage_app):
        result = runner.invoke(app, ["login", "--phone", "09012345678", "--password", ""])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid credentials" in result.output

    def test_logout(self, usage_app):
        save_credentials(usage_app)

        result = runner.invoke(app, ["logout"])

        assert result.exit_code == 0
        assert not asyncio.run(usage_app.credentials.has_credentials())

    def test_fetch_shows_usage(self, usage_app):
        save_credentials(usage_app)

        result = runner.invoke(app, ["fetch"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Remaining" in result.output
        assert "7.00" in result.output
        assert "41.7%" in result.output
        assert "from portal" in result.output

    def test_second_fetch_uses_cache(self, usage_app):
        save_credentials(usage_app)
        runner.invoke(app, ["fetch"])

        result = runner.invoke(app, ["fetch"])

        assert result.exit_code == EXIT_CODE_OK
        assert "from cache" in result.output
        assert usage_app.portal.count(usage_app.settings.portal.login_url) == 1

    def test_force_fetch_bypasses_cache(self, usage_app):
        save_credentials(usage_app)
        runner.invoke(app, ["fetch"])

        result = runner.invoke(app, ["fetch", "--force"])

        assert result.exit_code == EXIT_CODE_OK
        assert usage_app.portal.count(usage_app.settings.portal.login_url) == 2

    def test_fetch_without_credentials_fails(self, usage_app):
        result = runner.invoke(app, ["fetch"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "No credentials saved" in result.output

    def test_fetch_login_rejected(self, usage_app):
        save_credentials(usage_app)
        usage_app.portal.login_status = 401

        result = runner.invoke(app, ["fetch"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error" in result.output

    def test_status(self, usage_app):
        save_credentials(usage_app)

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "saved" in result.output
        assert "empty" in result.output
        assert "15 min" in result.output
        assert "never" in result.output

    def test_widget_config_disable(self, usage_app):
        result = runner.invoke(app, ["widget-config", "--disable"])

        assert result.exit_code == 0
        assert "Widget disabled" in result.output
        assert asyncio.run(usage_app.config_store.get()).enabled is False
        usage_app.bridge.native.cancelScheduledUpdate.assert_called_once_with()

    def test_widget_config_interval(self, usage_app):
        result = runner.invoke(app, ["widget-config", "--interval", "30", "--no-mini"])

        assert result.exit_code == 0
        assert "every 30 min" in result.output
        config = asyncio.run(usage_app.config_store.get())
        assert config.update_interval_minutes == 30
        assert config.show_mini_widget is False
        usage_app.bridge.native.scheduleUpdate.assert_called_with(30)

    def test_widget_config_rejects_zero_interval(self, usage_app):
        result = runner.invoke(app, ["widget-config", "--interval", "0"])
        assert result.exit_code != 0

    def test_widget_refresh(self, usage_app):
        save_credentials(usage_app)

        result = runner.invoke(app, ["widget-refresh"])

        assert result.exit_code == EXIT_CODE_OK
        usage_app.bridge.native.updateWidget.assert_called_once_with()

    def test_widget_refresh_without_credentials(self, usage_app):
        result = runner.invoke(app, ["widget-refresh"])

        assert result.exit_code == EXIT_CODE_FAIL
        usage_app.bridge.native.updateWidget.assert_not_called()

    def test_widget_reset(self, usage_app):
        runner.invoke(app, ["widget-config", "--interval", "60"])

        result = runner.invoke(app, ["widget-reset"])

        assert result.exit_code == 0
        assert asyncio.run(usage_app.config_store.get()).update_interval_minutes == 15
        usage_app.bridge.native.cancelScheduledUpdate.assert_called()


class TestGetApp:
    """Test loading settings from the environment."""

    def setup_method(self):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.saved_handlers = list(self.logger.handlers)
        self.saved_level = self.logger.level

    def teardown_method(self):
        for handler in list(self.logger.handlers):
            if handler not in self.saved_handlers:
                self.logger.removeHandler(handler)
                handler.close()
        self.logger.setLevel(self.saved_level)

    def test_status_with_config_file(self, tmp_path, monkeypatch):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.dump({
            "storage": {
                "db_path": str(tmp_path / "data" / "usage.db"),
                "key_path": str(tmp_path / "data" / "credentials.key"),
            },
            "logging": {"level": "WARNING"},
        }), encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "not saved" in result.output
        assert os.path.exists(tmp_path / "data" / "credentials.key")

    def test_invalid_config_fails(self, tmp_path, monkeypatch):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("unknown_section: {}\n", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))

        result = runner.invoke(app, ["status"])

        assert result.exit_code != 0
        assert isinstance(result.exception, ValueError)
