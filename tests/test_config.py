import sys

import pytest

from verifier.config import Settings, load_settings

_VARS = (
    "VERIFIER_DEFAULT_LANGUAGE",
    "VERIFIER_EXECUTION_TIMEOUT",
    "VERIFIER_SANDBOX_PYTHON",
    "VERIFIER_SANDBOX_STARTUP_TIMEOUT",
    "VERIFIER_SANDBOX_MEMORY_MB",
    "VERIFIER_TELEMETRY",
)

@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)

def test_defaults():
    settings = load_settings()
    assert settings == Settings()
    assert settings.sandbox_python == sys.executable
    assert settings.telemetry_enabled is True

def test_overrides(monkeypatch):
    monkeypatch.setenv("VERIFIER_DEFAULT_LANGUAGE", "Python ")
    monkeypatch.setenv("VERIFIER_EXECUTION_TIMEOUT", "2.5")
    monkeypatch.setenv("VERIFIER_SANDBOX_MEMORY_MB", "256")
    monkeypatch.setenv("VERIFIER_TELEMETRY", "no")
    settings = load_settings()
    assert settings.default_language == "python"
    assert settings.execution_timeout_s == 2.5
    assert settings.sandbox_memory_mb == 256
    assert settings.telemetry_enabled is False

@pytest.mark.parametrize(
    "name,value",
    [
        ("VERIFIER_EXECUTION_TIMEOUT", "soon"),
        ("VERIFIER_EXECUTION_TIMEOUT", "-1"),
        ("VERIFIER_SANDBOX_STARTUP_TIMEOUT", "0"),
        ("VERIFIER_SANDBOX_MEMORY_MB", "lots"),
        ("VERIFIER_TELEMETRY", "maybe"),
    ],
)
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError, match=name):
        load_settings()
