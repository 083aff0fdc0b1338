"""Configuration management for formation-tracker."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Notion API
    notion_token: str
    projects_database_id: str = ""
    tasks_database_id: str = ""
    trainings_database_id: str = ""

    # YAML collection mapping, overrides the database ids above
    config_file: str = "config.yaml"

    # Automation
    automated_task_due_days: int = 2  # due date offset of automated tasks

    # Dashboard
    week_ahead_days: int = 7
    critical_list_size: int = 5

    # Logging
    log_level: str = "INFO"
