# backend/lunchqueue/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/sqlite/lunchqueue.db"
    redis_url: str = "redis://localhost:6379/0"

    # Sandbox: fixed large availability, every reservation succeeds.
    # Never enable in production.
    sandbox_mode: bool = False

    slots_horizon_days: int = 90
    slots_step_minutes: int = 5
    slots_period_duration_minutes: int = 60
    slots_capacity: int = 10
    slots_skip_weekends: bool = True
    slots_base_wait_minutes: float = 5.0
    slots_hold_ttl_seconds: int = 300
    slots_grid_cache_ttl_seconds: int = 30
    slots_sweep_interval_seconds: int = 30

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        """Relative sqlite paths are anchored at the repository root."""
        prefix = "sqlite:///./"
        if not self.database_url.startswith(prefix):
            return self.database_url
        return f"sqlite:///{BASE_DIR / self.database_url[len(prefix):]}"


settings = Settings()
