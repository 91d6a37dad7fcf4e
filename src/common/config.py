"""Project configuration and paths.

Loads settings from config/settings.yaml and environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

# === Paths ===
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = PROJECT_ROOT / "data"
DATA_EXPORTS_DIR = DATA_DIR / "exports"

# Load .env from project root
load_dotenv(PROJECT_ROOT / ".env")


class ReportSettings(BaseModel):
    """Settings for report aggregation and export."""
    upcoming_window_days: int = Field(default=30, ge=0)
    top_booked_limit: int = Field(default=10, ge=1)
    export_dir: str = str(DATA_EXPORTS_DIR)


class SchedulingSettings(BaseModel):
    """Settings for maintenance rule scheduling."""
    work_order_horizon_months: int = Field(default=12, ge=1)
    max_generated_work_orders: int = Field(default=500, ge=1)


class Settings(BaseModel):
    """Top-level application settings."""
    reports: ReportSettings = Field(default_factory=ReportSettings)
    scheduling: SchedulingSettings = Field(default_factory=SchedulingSettings)
    log_level: str = "INFO"

    @classmethod
    def load(cls, settings_path: Path | None = None) -> Settings:
        """Load settings from config/settings.yaml, falling back to defaults.

        EXPORT_DIR and LOG_LEVEL environment variables take precedence
        over the file.
        """
        settings_path = settings_path or CONFIG_DIR / "settings.yaml"
        data: dict = {}
        if settings_path.exists():
            with open(settings_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        settings = cls(**data)

        if export_dir := os.getenv("EXPORT_DIR"):
            settings.reports.export_dir = export_dir
        if level := os.getenv("LOG_LEVEL"):
            settings.log_level = level.upper()
        return settings

    @property
    def export_abs_dir(self) -> Path:
        """Resolve the export directory relative to project root."""
        p = Path(self.reports.export_dir)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


# Singleton settings instance
settings = Settings.load()
