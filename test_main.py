"""
Tests for the command-line entry point and logging setup.
"""

import logging

import pytest
from click.testing import CliRunner

from echoprobe.core.config import LoggingConfig
from echoprobe.core.errors import ConfigurationError
from echoprobe.core.logger import QUIET_LOGGERS, get_logger, setup_logging
from echoprobe.main import load_config, main


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestCli:
    """Tests for argument handling that stops before any session starts."""

    def test_help(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "--clients" in result.output
        assert "--processing" in result.output

    @pytest.mark.parametrize("args", [
        ["--samples", "0"],
        ["--clients", "6"],
        ["--url", "http://example.com/"],
    ])
    def test_invalid_configuration_exits_before_running(self, args):
        result = CliRunner().invoke(main, args)
        assert result.exit_code == 2
        assert "Error:" in result.output

    def test_unknown_location_rejected_by_parser(self):
        result = CliRunner().invoke(main, ["--location", "mars"])
        assert result.exit_code == 2

    def test_missing_config_file(self, tmp_path):
        result = CliRunner().invoke(main, ["--config", str(tmp_path / "nope.toml")])
        assert result.exit_code == 2
        assert "not found" in result.output

    def test_string_delay_in_config_file(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text('[probe]\ninter_sample_delay_ms = "fast"\n')
        result = CliRunner().invoke(main, ["--config", str(config_file)])
        assert result.exit_code == 2
        assert "Inter-sample delay" in result.output

    def test_no_processing_flag_in_help(self):
        result = CliRunner().invoke(main, ["--help"])
        assert "--no-processing" in result.output


class TestLoadConfig:
    """Tests for merging the configuration file with command-line overrides."""

    @pytest.fixture
    def processing_file(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text('[probe]\nprocessing = true\nsamples = 20\n')
        return str(config_file)

    def test_file_value_kept_without_flag(self, processing_file):
        cfg = load_config(processing_file, processing=None)
        assert cfg.probe.processing is True
        assert cfg.probe.samples == 20

    def test_no_processing_overrides_file(self, processing_file):
        cfg = load_config(processing_file, processing=False)
        assert cfg.probe.processing is False
        assert cfg.probe.samples == 20

    def test_processing_enabled_without_file(self):
        assert load_config(processing=True).probe.processing is True
        assert load_config().probe.processing is False

    def test_responder_and_export_overrides(self):
        cfg = load_config(host="0.0.0.0", port=9000, no_export=True)
        assert cfg.responder.host == "0.0.0.0"
        assert cfg.responder.port == 9000
        assert cfg.export.enabled is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(str(tmp_path / "nope.toml"))

    def test_invalid_override(self):
        with pytest.raises(ConfigurationError, match="Sample count"):
            load_config(samples=0)


class TestLogging:
    """Tests for setup_logging()."""

    def test_file_handler(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "echoprobe.log"
        setup_logging(LoggingConfig(file=str(log_file), max_size=1, backup_count=1), logging.DEBUG)

        get_logger("test").info("hello from the probe")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_file.exists()
        assert "echoprobe.test - INFO - hello from the probe" in log_file.read_text()

    def test_quiets_transport_loggers(self, restore_root_logger):
        setup_logging(LoggingConfig(), logging.DEBUG)
        assert logging.getLogger("websockets").level == logging.WARNING
        assert logging.getLogger("echoprobe").level == logging.DEBUG

    def test_quiet_loggers_follow_stricter_level(self, restore_root_logger):
        setup_logging(LoggingConfig(), logging.ERROR)
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.ERROR

    def test_replaces_existing_handlers(self, restore_root_logger):
        setup_logging(LoggingConfig())
        setup_logging(LoggingConfig())
        assert len(logging.getLogger().handlers) == 1

    def test_unwritable_log_file_keeps_console(self, tmp_path, restore_root_logger):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        setup_logging(LoggingConfig(file=str(blocker / "echoprobe.log")))

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
