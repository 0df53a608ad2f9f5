from __future__ import annotations
import os
import sys
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number of seconds")
    if value <= 0:
        raise RuntimeError(f"{name} must be positive")
    return value

def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    if not raw.isdigit():
        raise RuntimeError(f"{name} must be a non-negative integer")
    return int(raw)

@dataclass(frozen=True)
class Settings:
    default_language: str = "python"
    execution_timeout_s: float = 5.0
    sandbox_python: str = sys.executable
    sandbox_startup_timeout_s: float = 15.0
    sandbox_memory_mb: int = 0  # 0 = no address-space cap
    telemetry_enabled: bool = True

def load_settings() -> Settings:
    load_dotenv()
    default_language = os.getenv("VERIFIER_DEFAULT_LANGUAGE", "python").strip().lower()
    if not default_language:
        raise RuntimeError("VERIFIER_DEFAULT_LANGUAGE must not be empty")

    telemetry = os.getenv("VERIFIER_TELEMETRY", "1").strip().lower()
    if telemetry not in {"1", "0", "true", "false", "yes", "no"}:
        raise RuntimeError("VERIFIER_TELEMETRY must be 1/0, true/false or yes/no")

    return Settings(
        default_language=default_language,
        execution_timeout_s=_float_env("VERIFIER_EXECUTION_TIMEOUT", 5.0),
        sandbox_python=os.getenv("VERIFIER_SANDBOX_PYTHON", "").strip() or sys.executable,
        sandbox_startup_timeout_s=_float_env("VERIFIER_SANDBOX_STARTUP_TIMEOUT", 15.0),
        sandbox_memory_mb=_int_env("VERIFIER_SANDBOX_MEMORY_MB", 0),
        telemetry_enabled=telemetry in {"1", "true", "yes"},
    )
