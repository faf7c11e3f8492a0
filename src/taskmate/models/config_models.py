"""Configuration models for TaskMate."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

OUTPUT_FORMATS = ("table", "json", "yaml")


class StoreConfig(BaseModel):
    """Remote task store configuration."""

    url: str = Field(default="", description="Base URL of the REST endpoint")
    key: str = Field(default="", description="API key sent with every request")
    table: str = Field(default="tasks")
    timeout: int = Field(default=30)
    retry: int = Field(default=3)
    # Stored spelling for each status; some schemas use inprogress/done
    status_names: dict[str, str] = Field(
        default_factory=lambda: {
            "todo": "todo",
            "in_progress": "in_progress",
            "completed": "completed",
        }
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.key)


class RealtimeConfig(BaseModel):
    """Change feed configuration."""

    enabled: bool = Field(default=True)
    path: str = Field(default="/realtime/v1/stream")
    poll_interval: int = Field(default=15, ge=1)


class OutputConfig(BaseModel):
    """Output configuration."""

    format: str = Field(default="table", description="table, json or yaml")
    color: bool = Field(default=True)

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in OUTPUT_FORMATS:
            raise ValueError(f"format must be one of: {', '.join(OUTPUT_FORMATS)}")
        return v


class AppConfig(BaseModel):
    """Main TaskMate configuration."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
