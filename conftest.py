"""
Root conftest — isolate environment variables so that config tests are not
affected by real keys or config paths in the developer's or CI environment.
"""
import pytest

_ENV_VARS = [
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "AGENTLOOP_CONFIG",
]


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    """Remove secret/config env vars for every test so Settings() behaves
    as if none are present unless the test explicitly provides them.
    Also disables .env file loading so local developer .env files don't
    leak real credentials into tests."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    import agentloop.config.settings as settings_module
    from pydantic_settings import SettingsConfigDict
    patched_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
    monkeypatch.setattr(settings_module.Settings, "model_config", patched_config)
