import pytest

from nest_health import config


@pytest.fixture(autouse=True)
def reset_runtime_config(monkeypatch):
    """Isolate tests from NEST_* environment variables and CLI overrides."""
    for name in (
        "NEST_API_KEY",
        "NEST_API_BASE_URL",
        "NEST_ORGANIZATION",
        "NEST_HTTP_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    config.set_api_key(None)
    config.set_base_url(None)
    config.set_organization(None)
    config.set_verify_ssl(True)
