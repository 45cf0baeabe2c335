"""Runtime configuration loaded from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_DATA_DIR = Path.cwd() / "data"

AUTO_RENEW_BEHAVIORS = ("override", "deduct")


@dataclass
class Settings:
    """Process-wide settings.

    Values come from environment variables (optionally via a ``.env`` file).
    Ledger rules such as the overdraft floor are constants in the models,
    not settings.
    """

    data_dir: Path = DEFAULT_DATA_DIR
    db_path: Path | None = None
    log_level: str = "INFO"
    log_file: Path | None = None
    auto_renew_behavior: str = "override"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment."""
        load_dotenv()

        data_dir = Path(os.getenv("STUDIO_DATA_DIR", str(DEFAULT_DATA_DIR)))
        db_path = os.getenv("STUDIO_DB_PATH")
        log_file = os.getenv("STUDIO_LOG_FILE")

        behavior = os.getenv("STUDIO_AUTO_RENEW_BEHAVIOR", "override").lower()
        if behavior not in AUTO_RENEW_BEHAVIORS:
            behavior = "override"

        return cls(
            data_dir=data_dir,
            db_path=Path(db_path) if db_path else None,
            log_level=os.getenv("STUDIO_LOG_LEVEL", "INFO").upper(),
            log_file=Path(log_file) if log_file else None,
            auto_renew_behavior=behavior,
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
