import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, model_validator
from typing import Literal, Optional
from pydantic_settings import BaseSettings
from sqlalchemy.engine.url import make_url, URL

DEFAULT_DATABASE_URL = "sqlite:///./sqlite.db"
DEFAULT_TEST_DATABASE_URL = "sqlite:///./sqlite_test.db"

# Project root (parent of app/) - used so .env is found regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Explicitly load .env into os.environ so it works in tests and subprocesses
load_dotenv(_PROJECT_ROOT / ".env")


class Settings(BaseSettings):
    app_name: str = "holiday-chat-api"
    database_url: Optional[str] = None  # Will be set dynamically
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENV", "ENVIRONMENT"),
    )
    log_level: str = Field(default="INFO", json_schema_extra={"env": "LOG_LEVEL"})
    port: int = Field(default=8000, json_schema_extra={"env": "PORT"})

    # Conversation storage
    storage_backend: Literal["sql", "json"] = Field(
        default="sql", json_schema_extra={"env": "STORAGE_BACKEND"}
    )
    json_store_dir: str = Field(
        default="data", json_schema_extra={"env": "JSON_STORE_DIR"}
    )
    preview_length: int = Field(
        default=100, ge=1, json_schema_extra={"env": "PREVIEW_LENGTH"}
    )
    default_session_title: str = Field(
        default="New Chat", json_schema_extra={"env": "DEFAULT_SESSION_TITLE"}
    )
    append_max_retries: int = Field(
        default=5, ge=1, json_schema_extra={"env": "APPEND_MAX_RETRIES"}
    )
    export_version: str = "1.0"
    exported_by: str = "Indonesian Holiday Assistant"

    # LLM / OpenRouter
    llm_model: str = Field(
        default="openai/gpt-3.5-turbo", json_schema_extra={"env": "LLM_MODEL"}
    )
    openrouter_api_key: Optional[str] = Field(
        default=None, json_schema_extra={"env": "OPENROUTER_API_KEY"}
    )
    openrouter_api_base: str = Field(
        default="https://openrouter.ai/api/v1",
        json_schema_extra={"env": "OPENROUTER_API_BASE"},
    )
    llm_temperature: float = Field(
        default=0.7, ge=0.0, le=2.0, json_schema_extra={"env": "LLM_TEMPERATURE"}
    )

    @model_validator(mode="before")
    def set_database_url(cls, values):
        """Set the database_url dynamically based on the environment field."""
        environment = (
            values.get("environment")
            or values.get("ENV")
            or values.get("ENVIRONMENT")
            or os.getenv("ENV", "development")
        )
        if values.get("database_url"):
            return values
        if environment.lower() == "test":
            values["database_url"] = os.getenv(
                "TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL
            )
        else:
            values["database_url"] = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

        return values

    @property
    def is_production(self) -> bool:
        """Check if the current environment is production."""
        return self.environment.lower() == "production"

    @property
    def is_test(self) -> bool:
        """Check if the current environment is test."""
        return self.environment.lower() == "test"

    @property
    def database_url_obj(self) -> URL:
        """Return the database URL as a URL object using sqlalchemy's make_url."""
        if not self.database_url:
            raise ValueError("Database URL is not set.")
        return make_url(self.database_url)

    class ConfigDict:
        env_file = str(_PROJECT_ROOT / ".env")
        env_file_encoding = "utf-8"
        extra = "allow"  # Allow extra environment variables


def get_settings() -> Settings:
    """Get application settings with required environment variables."""
    return Settings()
