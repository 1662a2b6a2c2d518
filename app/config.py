from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


ENV_PATH = Path(__file__).parent.parent / ".env"

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(slots=True)
class Settings:
    """
    Runtime configuration read from the environment.

    `.env` is loaded by `app.main` before the first call to `get_settings()`.
    """

    anthropic_api_key: str | None = None
    anthropic_model: str = DEFAULT_MODEL
    anthropic_max_tokens: int = 4096
    ai_timeout_seconds: float = 60.0
    render_timeout_seconds: float = 120.0
    storage_dir: Path = Path("storage/marketing")
    force_offline: bool = False
    chromium_executable: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            anthropic_model=os.getenv("ANTHROPIC_MODEL", DEFAULT_MODEL),
            anthropic_max_tokens=int(os.getenv("ANTHROPIC_MAX_TOKENS", "4096")),
            ai_timeout_seconds=float(os.getenv("AI_TIMEOUT_SECONDS", "60")),
            render_timeout_seconds=float(os.getenv("RENDER_TIMEOUT_SECONDS", "120")),
            storage_dir=Path(os.getenv("MARKETING_STORAGE_DIR", "storage/marketing")),
            force_offline=_env_bool("MARKETING_FORCE_OFFLINE"),
            chromium_executable=os.getenv("CHROMIUM_EXECUTABLE") or None,
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
