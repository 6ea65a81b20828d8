"""
Tests for sysimage configuration loading and host validation.
"""

import os

import pytest

from sysimage import config as config_module
from sysimage.config import (
    config_exists,
    get_config_file_path,
    get_default_download_dir,
    load_config,
    resolve_config,
    validate_host,
)
from sysimage.constants import DEFAULT_CACHE_TIME, DEFAULT_HOST
from sysimage.exceptions import ConfigFileError, ConfigurationError

pytestmark = [pytest.mark.unit, pytest.mark.configuration]


class TestValidateHost:
    """Test host URL validation and normalization."""

    def test_https_host_gets_trailing_slash(self):
        assert validate_host("https://example.com") == "https://example.com/"

    def test_trailing_slash_kept(self):
        assert validate_host("https://example.com/") == "https://example.com/"

    def test_host_with_path(self):
        assert (
            validate_host("https://example.com/system-image")
            == "https://example.com/system-image/"
        )

    def test_insecure_host_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_host("http://example.com")
        assert "Insecure URL" in str(exc_info.value)

    def test_insecure_host_allowed_with_override(self):
        assert (
            validate_host("http://example.com", allow_insecure=True)
            == "http://example.com/"
        )

    @pytest.mark.parametrize(
        "host", ["not a url", "ftp://example.com", "example", "", None, 42]
    )
    def test_invalid_host(self, host):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_host(host)
        assert "Host is not a valid URL!" in str(exc_info.value)


class TestResolveConfig:
    """Test default filling and option validation."""

    def test_defaults(self):
        resolved = resolve_config()
        assert resolved["HOST"] == DEFAULT_HOST
        assert resolved["CACHE_TIME"] == DEFAULT_CACHE_TIME
        assert resolved["ALLOW_INSECURE"] is False
        assert resolved["SERVE_STALE_INDEX"] is False
        assert resolved["MAX_CONCURRENT_DOWNLOADS"] >= 1
        assert resolved["DOWNLOAD_DIR"] == get_default_download_dir()

    def test_user_values(self, tmp_path):
        resolved = resolve_config(
            {
                "HOST": "http://mirror.local",
                "ALLOW_INSECURE": True,
                "CACHE_TIME": "60",
                "DOWNLOAD_DIR": tmp_path,
                "MAX_CONCURRENT_DOWNLOADS": 2,
                "SERVE_STALE_INDEX": True,
            }
        )
        assert resolved["HOST"] == "http://mirror.local/"
        assert resolved["CACHE_TIME"] == 60
        assert resolved["DOWNLOAD_DIR"] == str(tmp_path)
        assert resolved["MAX_CONCURRENT_DOWNLOADS"] == 2
        assert resolved["SERVE_STALE_INDEX"] is True

    def test_empty_host_means_default(self):
        assert resolve_config({"HOST": ""})["HOST"] == DEFAULT_HOST

    def test_input_not_mutated(self):
        user = {"HOST": "https://example.com"}
        resolve_config(user)
        assert user == {"HOST": "https://example.com"}

    @pytest.mark.parametrize("value", [0, -5, "abc", None])
    def test_invalid_cache_time(self, value):
        with pytest.raises(ConfigurationError):
            resolve_config({"CACHE_TIME": value})

    def test_invalid_max_concurrent(self):
        with pytest.raises(ConfigurationError):
            resolve_config({"MAX_CONCURRENT_DOWNLOADS": 0})


class TestLoadConfig:
    """Test YAML configuration file loading."""

    def test_default_path_uses_platformdirs(self):
        path = get_config_file_path()
        assert path.endswith("sysimage.yaml")
        assert not config_exists()

    def test_missing_file_returns_none(self, tmp_path):
        assert load_config(str(tmp_path / "missing.yaml")) is None

    def test_load_mapping(self, tmp_path):
        path = tmp_path / "sysimage.yaml"
        path.write_text("HOST: https://mirror.example/\nCACHE_TIME: 30\n")
        assert load_config(str(path)) == {
            "HOST": "https://mirror.example/",
            "CACHE_TIME": 30,
        }
        assert config_exists(str(path))

    def test_empty_file_returns_empty_mapping(self, tmp_path):
        path = tmp_path / "sysimage.yaml"
        path.write_text("")
        assert load_config(str(path)) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "sysimage.yaml"
        path.write_text("HOST: [unclosed\n")
        with pytest.raises(ConfigFileError):
            load_config(str(path))

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "sysimage.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigFileError) as exc_info:
            load_config(str(path))
        assert "got list" in str(exc_info.value)

    def test_load_from_default_location(self):
        path = config_module.get_config_file_path()
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write("SERVE_STALE_INDEX: true\n")
        assert load_config() == {"SERVE_STALE_INDEX": True}
