"""
Tests for configuration loading.
"""

import datetime

import pytest

from config import Config, ConfigurationLoadError


class TestConfig:
    """TOML configuration."""

    def test_defaults_without_a_file(self, tmp_path):
        config = Config(tmp_path / "config.toml")

        assert config.heartbeat_timeout == datetime.timedelta(minutes=10)
        assert config.open_timeout == 10.0
        assert config.manages_group(1)

    @pytest.mark.asyncio
    async def test_loads_and_validates(self, tmp_path):
        location = tmp_path / "config.toml"
        location.write_text(
            "[console]\n"
            "heartbeat_timeout = 120\n"
            "ping_interval = 0\n"
            "\n"
            "[groups]\n"
            "include = [1, 2]\n"
            "exclude = [2]\n"
        )
        config = Config(location)

        await config.initialize()

        assert config.heartbeat_timeout == datetime.timedelta(minutes=2)
        assert config.ping_interval == 0
        assert config.manages_group(1)
        assert not config.manages_group(2)
        assert not config.manages_group(3)

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationLoadError):
            await Config(tmp_path / "missing.toml").initialize()

    @pytest.mark.asyncio
    async def test_invalid_toml(self, tmp_path):
        location = tmp_path / "config.toml"
        location.write_text("[console\n")

        with pytest.raises(ConfigurationLoadError):
            await Config(location).initialize()

    @pytest.mark.asyncio
    async def test_schema_mismatch(self, tmp_path):
        location = tmp_path / "config.toml"
        location.write_text("[console]\nheartbeat_timeout = -5\n")

        with pytest.raises(ConfigurationLoadError):
            await Config(location).initialize()

    @pytest.mark.asyncio
    async def test_schema_mismatch_names_the_setting(self, tmp_path, caplog):
        location = tmp_path / "config.toml"
        location.write_text("[groups]\ninclude = [\"lobby\"]\n")

        with pytest.raises(ConfigurationLoadError) as raised:
            await Config(location).initialize()

        assert raised.value.args == (location,)
        assert "groups.include.0" in caplog.text

    @pytest.mark.asyncio
    async def test_missing_file_points_at_the_example(self, tmp_path, caplog):
        with pytest.raises(ConfigurationLoadError):
            await Config(tmp_path / "missing.toml").initialize()

        assert ".example/config.toml" in caplog.text
        assert "CONSOLE_KEEPER_CONFIG" in caplog.text
