"""
Configuration management for OWASP Nest Health.

Settings are resolved from (highest priority first):
1. Values set explicitly at runtime (CLI options)
2. Environment variables (a local .env file is loaded too)
3. .nest-health.toml (local config)
4. pyproject.toml (project-level config)
5. Built-in defaults
"""

import os
import tomllib
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# project_root is the parent directory of nest_health/
PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_BASE_URL = "https://nest.owasp.org/api/v0"
DEFAULT_ORGANIZATION = "OWASP"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_CONCURRENT = 5

# Global configuration for SSL verification
# Default: True (verify SSL certificates)
# Can be set to False by CLI --insecure flag
VERIFY_SSL = True

# Runtime overrides (set from the CLI)
_API_KEY: str | None = None
_BASE_URL: str | None = None
_ORGANIZATION: str | None = None


def load_config_file(config_path: Path) -> dict:
    """Load a TOML configuration file."""
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        raise ValueError(f"Failed to load config from {config_path}: {e}") from e


def get_tool_config() -> dict:
    """
    Load the [tool.nest-health] table.

    .nest-health.toml takes priority over pyproject.toml; the two are not merged.

    Returns:
        The tool configuration table, or an empty dict.
    """
    for filename in (".nest-health.toml", "pyproject.toml"):
        config_path = PROJECT_ROOT / filename
        if config_path.exists():
            section = load_config_file(config_path).get("tool", {}).get("nest-health")
            if section:
                return section
    return {}


def set_api_key(api_key: str | None) -> None:
    global _API_KEY
    _API_KEY = api_key


def get_api_key() -> str:
    """
    Get the Nest API key.

    Priority:
    1. Explicitly set value via set_api_key()
    2. NEST_API_KEY environment variable
    3. Empty string (requests are sent unauthenticated)
    """
    if _API_KEY:
        return _API_KEY
    return os.getenv("NEST_API_KEY", "")


def set_base_url(base_url: str | None) -> None:
    global _BASE_URL
    _BASE_URL = base_url


def get_base_url() -> str:
    """
    Get the Nest API base URL, without a trailing slash.

    Priority:
    1. Explicitly set value via set_base_url()
    2. NEST_API_BASE_URL environment variable
    3. base_url in config files
    4. Default: https://nest.owasp.org/api/v0
    """
    base_url = (
        _BASE_URL
        or os.getenv("NEST_API_BASE_URL")
        or get_tool_config().get("base_url")
        or DEFAULT_BASE_URL
    )
    return base_url.rstrip("/")


def set_organization(organization: str | None) -> None:
    global _ORGANIZATION
    _ORGANIZATION = organization


def get_organization() -> str:
    """
    Get the organization whose repositories feed the health score.

    Priority:
    1. Explicitly set value via set_organization()
    2. NEST_ORGANIZATION environment variable
    3. organization in config files
    4. Default: OWASP
    """
    return (
        _ORGANIZATION
        or os.getenv("NEST_ORGANIZATION")
        or get_tool_config().get("organization")
        or DEFAULT_ORGANIZATION
    )


def get_max_concurrent() -> int:
    """Maximum number of repositories fetched concurrently."""
    value = get_tool_config().get("max_concurrent", DEFAULT_MAX_CONCURRENT)
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return DEFAULT_MAX_CONCURRENT


def get_timeout() -> float:
    """HTTP timeout in seconds (NEST_HTTP_TIMEOUT or config `timeout`)."""
    env_timeout = os.getenv("NEST_HTTP_TIMEOUT")
    if env_timeout:
        try:
            return float(env_timeout)
        except ValueError:
            pass
    value = get_tool_config().get("timeout", DEFAULT_TIMEOUT)
    try:
        return float(value)
    except (TypeError, ValueError):
        return DEFAULT_TIMEOUT


def set_verify_ssl(verify: bool) -> None:
    """
    Set the SSL verification setting globally.

    Args:
        verify: Whether to verify SSL certificates.
    """
    global VERIFY_SSL
    VERIFY_SSL = verify


def get_verify_ssl() -> bool:
    """
    Get the current SSL verification setting.

    Returns:
        Whether SSL verification is enabled.
    """
    return VERIFY_SSL
