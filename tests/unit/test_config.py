"""Unit tests for server configuration."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from sdmaterial.core import config as config_module
from sdmaterial.core.config import (
    DEFAULT_SERVER_URL,
    ServerConfig,
    get_config,
    set_config,
)
from sdmaterial.utils.exceptions import ConfigurationError


@pytest.mark.unit
class TestFromEnv:
    def test_defaults_when_env_empty(self):
        with patch.dict(os.environ, {}, clear=True):
            config = ServerConfig.from_env()
        assert config.base_url == DEFAULT_SERVER_URL
        assert config.use_auth is False
        assert config.credentials is None
        assert config.request_timeout == 30
        assert config.generation_timeout == 600
        assert config.default_sampler == "Euler a"
        assert config.default_seed == -1

    def test_reads_overrides(self):
        env = {
            "SDMATERIAL_SERVER_URL": "https://sd.example:7861",
            "SDMATERIAL_USE_AUTH": "yes",
            "SDMATERIAL_USERNAME": "artist",
            "SDMATERIAL_PASSWORD": "hunter2",
            "SDMATERIAL_OUTPUT_ROOT": "/tmp/assets",
            "SDMATERIAL_REQUEST_TIMEOUT": "5",
            "SDMATERIAL_GENERATION_TIMEOUT": "120",
            "SDMATERIAL_DEFAULT_SAMPLER": "DDIM",
            "SDMATERIAL_DEFAULT_SEED": "4242",
            "SDMATERIAL_TXT2IMG_PATH": "/custom/txt2img",
        }
        with patch.dict(os.environ, env, clear=True):
            config = ServerConfig.from_env()
        assert config.base_url == "https://sd.example:7861"
        assert config.credentials == ("artist", "hunter2")
        assert config.output_root == "/tmp/assets"
        assert config.request_timeout == 5
        assert config.generation_timeout == 120
        assert config.default_sampler == "DDIM"
        assert config.default_seed == 4242
        assert config.txt2img_path == "/custom/txt2img"

    def test_bad_integer_raises(self):
        with patch.dict(os.environ, {"SDMATERIAL_REQUEST_TIMEOUT": "soon"}, clear=True):
            with pytest.raises(ConfigurationError, match="SDMATERIAL_REQUEST_TIMEOUT"):
                ServerConfig.from_env()


@pytest.mark.unit
class TestValidate:
    def test_valid_default(self):
        config = ServerConfig()
        assert config.is_valid() is False
        config.validate()
        assert config.is_valid() is True

    @pytest.mark.parametrize("url", ["", "   ", "sd.local:7860", "ftp://sd"])
    def test_bad_url(self, url):
        with pytest.raises(ConfigurationError):
            ServerConfig(base_url=url).validate()

    def test_nonpositive_timeouts(self):
        with pytest.raises(ConfigurationError):
            ServerConfig(request_timeout=0).validate()
        with pytest.raises(ConfigurationError):
            ServerConfig(poll_interval=0).validate()

    @pytest.mark.parametrize("username,password", [("", "pw"), ("user", ""), ("", "")])
    def test_auth_requires_both_credentials(self, username, password):
        config = ServerConfig(use_auth=True, username=username, password=password)
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_credentials_ignored_without_use_auth(self):
        config = ServerConfig(username="user", password="pw")
        config.validate()
        assert config.credentials is None


@pytest.mark.unit
class TestCredentials:
    def test_set_credentials_enables_auth_and_resets_validation(self):
        config = ServerConfig()
        config.validate()
        config.set_credentials("u", "p")
        assert config.use_auth is True
        assert config.credentials == ("u", "p")
        assert config.is_valid() is False

    def test_set_credentials_rejects_empty(self):
        with pytest.raises(ConfigurationError):
            ServerConfig().set_credentials("u", "")

    def test_repr_hides_password(self):
        config = ServerConfig(username="u", password="s3cret", use_auth=True)
        assert "s3cret" not in repr(config)


@pytest.mark.unit
class TestPaths:
    def test_url_joins_slashes(self):
        config = ServerConfig(base_url="http://h:1/")
        assert config.url("/sdapi/v1/txt2img") == "http://h:1/sdapi/v1/txt2img"
        assert config.url("sdapi/v1/progress") == "http://h:1/sdapi/v1/progress"

    def test_materials_dir(self):
        assert ServerConfig(output_root="/data").materials_dir == Path("/data") / "SDMaterials"


@pytest.mark.unit
class TestGlobalConfig:
    def test_set_and_get(self):
        previous = config_module._global_config
        try:
            custom = ServerConfig(base_url="http://other:1")
            set_config(custom)
            assert get_config() is custom
        finally:
            config_module._global_config = previous
