"""
Tests for configuration loading and validation.
"""

import math

import pytest

from echoprobe.core.config import (
    Config,
    DEPLOYED_URL,
    LOCAL_URL,
    MAX_CLIENTS,
    ProbeConfig,
    resolve_url,
)
from echoprobe.core.errors import ConfigurationError


class TestProbeConfig:
    """Tests for ProbeConfig.validate()."""

    def test_defaults_are_valid(self):
        config = ProbeConfig()
        config.validate()
        assert config.url == DEPLOYED_URL
        assert config.location == "me"
        assert config.inter_sample_delay_ms == 10.0

    def test_zero_samples_rejected(self):
        with pytest.raises(ConfigurationError, match="Sample count"):
            ProbeConfig(samples=0).validate()

    def test_minimum_sample_count_accepted(self):
        ProbeConfig(samples=1).validate()

    @pytest.mark.parametrize("clients", [0, -1, MAX_CLIENTS + 1])
    def test_client_count_bounds(self, clients):
        with pytest.raises(ConfigurationError, match="Client count"):
            ProbeConfig(clients=clients).validate()

    def test_bool_is_not_a_count(self):
        with pytest.raises(ConfigurationError):
            ProbeConfig(clients=True).validate()

    @pytest.mark.parametrize("url", ["http://example.com/", "example.com", "ws://", ""])
    def test_endpoint_must_be_websocket_url(self, url):
        with pytest.raises(ConfigurationError, match="Endpoint"):
            ProbeConfig(url=url).validate()

    def test_unknown_location_rejected(self):
        with pytest.raises(ConfigurationError, match="location hint"):
            ProbeConfig(location="mars").validate()

    def test_negative_delay_rejected(self):
        with pytest.raises(ConfigurationError):
            ProbeConfig(inter_sample_delay_ms=-1).validate()

    @pytest.mark.parametrize("delay", ["fast", "10", None, True, [10]])
    def test_non_numeric_delay_rejected(self, delay):
        with pytest.raises(ConfigurationError, match="Inter-sample delay"):
            ProbeConfig(inter_sample_delay_ms=delay).validate()

    @pytest.mark.parametrize("delay", [math.inf, -math.inf, math.nan])
    def test_non_finite_delay_rejected(self, delay):
        with pytest.raises(ConfigurationError, match="finite"):
            ProbeConfig(inter_sample_delay_ms=delay).validate()

    @pytest.mark.parametrize("delay", [0, 0.0, 25, 2.5])
    def test_numeric_delay_accepted(self, delay):
        ProbeConfig(inter_sample_delay_ms=delay).validate()

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            ProbeConfig(samples=0).validate()

    def test_total_samples(self):
        assert ProbeConfig(clients=3, samples=5).total_samples == 15

    def test_immutable(self):
        config = ProbeConfig()
        with pytest.raises(AttributeError):
            config.clients = 4


class TestConfig:
    """Tests for Config loading and overrides."""

    def test_url_presets(self):
        assert resolve_url("local") == LOCAL_URL
        assert resolve_url("deployed") == DEPLOYED_URL
        assert resolve_url("wss://other.example/") == "wss://other.example/"

    def test_from_file(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            '[probe]\n'
            'clients = 3\n'
            'samples = 20\n'
            'url = "local"\n'
            'location = "apac"\n'
            'processing = true\n'
            '\n'
            '[logging]\n'
            'level = "DEBUG"\n'
        )

        config = Config.from_file(config_file)
        assert config.validate()
        assert config.probe.clients == 3
        assert config.probe.samples == 20
        assert config.probe.url == LOCAL_URL
        assert config.probe.location == "apac"
        assert config.probe.processing is True
        assert config.logging.level == "DEBUG"
        assert config.export.results_dir == "./results"

    def test_from_file_unknown_key(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text('[probe]\nworkers = 3\n')
        with pytest.raises(ConfigurationError):
            Config.from_file(config_file)

    def test_from_file_missing(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Failed to load"):
            Config.from_file(tmp_path / "absent.toml")

    def test_with_overrides_ignores_none(self):
        config = Config().with_overrides(clients=2, samples=None, url="local")
        assert config.probe.clients == 2
        assert config.probe.samples == 100
        assert config.probe.url == LOCAL_URL

    def test_with_overrides_unknown_setting(self):
        with pytest.raises(ConfigurationError):
            Config().with_overrides(workers=3)

    def test_from_file_string_delay_fails_validation(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text('[probe]\ninter_sample_delay_ms = "fast"\n')
        config = Config.from_file(config_file)
        with pytest.raises(ConfigurationError, match="Inter-sample delay"):
            config.validate()

    def test_validate_checks_probe_section(self):
        config = Config().with_overrides(samples=0)
        with pytest.raises(ConfigurationError):
            config.validate()
