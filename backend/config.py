"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "postgresql+asyncpg://localhost/task_history"

    # Scheduler settings
    enable_scheduler: bool = False  # Set ENABLE_SCHEDULER=true on ONE worker only
    task_history_cleanup_interval_hours: int = 1

    # Retention: approximate number of task history rows to keep
    task_history_keep_rows: int = 100000

    # Failure capture
    task_history_max_stacktrace_frames: int = 50

    # Permissions
    # When enabled, holders of the monitoring capability may see task history,
    # otherwise only superusers can.
    enable_advanced_permissions: bool = False

    # Task history API access control
    enable_task_history_api: bool = True  # Set ENABLE_TASK_HISTORY_API=false to disable

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
