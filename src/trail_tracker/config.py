"""Centralized settings for the trail tracker."""
from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "TRAIL_TRACKER_"}

    # Redis; empty string means disabled (falls back to the file backend)
    redis_url: str = ""

    # "auto" | "redis" | "file" | "memory"
    backup_backend: str = "auto"

    backup_dir: str = ".trail_tracker/backup"
    archive_dir: str = ".trail_tracker/routes"

    # One backup slot per device
    device_id: str = "default"

    # Periodic checkpoint while tracking, in active milliseconds
    checkpoint_interval_ms: int = 30000

    # Checkpoint writes run on a background single-writer queue
    backup_async: bool = True

    # Device power policy: stop the location source while paused
    suspend_sampling_on_pause: bool = False


settings = Settings()
