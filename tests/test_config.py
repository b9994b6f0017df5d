"""
Tests for the configuration module.
"""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from nest_health.config import (
    DEFAULT_BASE_URL,
    DEFAULT_MAX_CONCURRENT,
    get_api_key,
    get_base_url,
    get_max_concurrent,
    get_organization,
    get_timeout,
    get_tool_config,
    get_verify_ssl,
    load_config_file,
    set_api_key,
    set_base_url,
    set_organization,
    set_verify_ssl,
)


@pytest.fixture
def temp_project_root():
    """Create a temporary project root for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir_path = Path(tmpdir)

        # Patch PROJECT_ROOT
        import nest_health.config

        original_root = nest_health.config.PROJECT_ROOT
        nest_health.config.PROJECT_ROOT = tmpdir_path

        yield tmpdir_path

        # Restore
        nest_health.config.PROJECT_ROOT = original_root


def test_tool_config_from_local_config(temp_project_root):
    """Test loading settings from .nest-health.toml."""
    (temp_project_root / ".nest-health.toml").write_text(
        """
[tool.nest-health]
organization = "OWASP-Labs"
max_concurrent = 3
"""
    )

    assert get_tool_config() == {"organization": "OWASP-Labs", "max_concurrent": 3}
    assert get_organization() == "OWASP-Labs"
    assert get_max_concurrent() == 3


def test_local_config_takes_priority(temp_project_root):
    """Test that .nest-health.toml takes priority over pyproject.toml."""
    (temp_project_root / "pyproject.toml").write_text(
        """
[tool.nest-health]
base_url = "https://pyproject.example/api"
"""
    )
    (temp_project_root / ".nest-health.toml").write_text(
        """
[tool.nest-health]
base_url = "https://local.example/api/"
"""
    )

    assert get_base_url() == "https://local.example/api"


def test_pyproject_fallback(temp_project_root):
    """Test loading settings from pyproject.toml."""
    (temp_project_root / "pyproject.toml").write_text(
        """
[project]
name = "demo"

[tool.nest-health]
timeout = 5
"""
    )

    assert get_timeout() == 5.0


def test_defaults_without_config(temp_project_root):
    assert get_tool_config() == {}
    assert get_base_url() == DEFAULT_BASE_URL
    assert get_organization() == "OWASP"
    assert get_max_concurrent() == DEFAULT_MAX_CONCURRENT
    assert get_api_key() == ""


def test_invalid_max_concurrent_uses_default(temp_project_root):
    (temp_project_root / ".nest-health.toml").write_text(
        """
[tool.nest-health]
max_concurrent = "many"
"""
    )
    assert get_max_concurrent() == DEFAULT_MAX_CONCURRENT


def test_load_config_file_invalid_toml(temp_project_root):
    config_file = temp_project_root / "broken.toml"
    config_file.write_text("[tool.nest-health\n")

    with pytest.raises(ValueError, match="Failed to load config"):
        load_config_file(config_file)


def test_load_config_file_missing(temp_project_root):
    assert load_config_file(temp_project_root / "missing.toml") == {}


def test_environment_overrides_config(temp_project_root):
    (temp_project_root / ".nest-health.toml").write_text(
        """
[tool.nest-health]
organization = "FromConfig"
"""
    )
    with patch.dict(
        "os.environ",
        {
            "NEST_ORGANIZATION": "FromEnv",
            "NEST_API_BASE_URL": "https://env.example/api",
            "NEST_API_KEY": "env-key",
            "NEST_HTTP_TIMEOUT": "12.5",
        },
    ):
        assert get_organization() == "FromEnv"
        assert get_base_url() == "https://env.example/api"
        assert get_api_key() == "env-key"
        assert get_timeout() == 12.5


def test_explicit_values_take_priority(temp_project_root):
    with patch.dict(
        "os.environ", {"NEST_ORGANIZATION": "FromEnv", "NEST_API_KEY": "env-key"}
    ):
        set_organization("Explicit")
        set_api_key("explicit-key")
        set_base_url("https://explicit.example/")

        assert get_organization() == "Explicit"
        assert get_api_key() == "explicit-key"
        assert get_base_url() == "https://explicit.example"


def test_verify_ssl_toggle():
    assert get_verify_ssl() is True
    set_verify_ssl(False)
    assert get_verify_ssl() is False
