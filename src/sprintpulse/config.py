from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml

from sprintpulse.exceptions import ConfigError

class AppSettings(BaseSettings):
    name: str = "SprintPulse"
    version: str = "1.0.0"

class EngineSettings(BaseSettings):
    """
    Options recognized by the scoring and forecasting core.
    Owned by the caller; the core only reads them.
    """
    stuck_task_days: int = 2
    lookback_sprints: int = 3
    standard_capacity_points: float = 20.0

class ThresholdSettings(BaseSettings):
    health_alert: int = 60
    health_critical: int = 40
    overload_percent: int = 100
    behind_schedule_margin: int = 20

class TrackerSettings(BaseSettings):
    """
    Jira Agile REST connection. Disabled until a base_url is configured.
    """
    base_url: Optional[str] = None
    email: Optional[str] = None
    api_token: Optional[str] = None
    story_points_field: str = "customfield_10016"
    max_results: int = 500
    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_seconds: float = 1.0

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

class LoggingSettings(BaseSettings):
    log_requests: bool = True
    level: str = "INFO"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_nested_delimiter="__", env_file=".env", extra="ignore")
    app: AppSettings = AppSettings()
    engine: EngineSettings = EngineSettings()
    thresholds: ThresholdSettings = ThresholdSettings()
    tracker: TrackerSettings = TrackerSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        # Load from default path if exists
        default_path = Path("config/settings.yaml")
        path = config_path or (default_path if default_path.exists() else None)

        if not path:
            return cls()

        try:
            with open(path, "r") as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to read settings from {path}: {exc}") from exc

        return cls(**config_data)

settings = Settings.load()
