from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from chordcoach.application.progress.mastery import MasteryRules
from chordcoach.application.progress.scheduler import SchedulerParams
from chordcoach.domain import constants as C


def _config_files() -> list[Path]:
    return [
        Path.home() / ".config/chordcoach/config.toml",
        Path.home() / ".chordcoach.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for chordcoach.
    Supports loading from:
    1. Environment variables (CHORDCOACH_*)
    2. Config file (~/.config/chordcoach/config.toml)
    3. Manual overrides (CLI / HTTP)
    """

    model_config = SettingsConfigDict(
        env_prefix="CHORDCOACH_",
        extra="ignore",
    )

    # Storage
    backend: Literal["json", "memory"] = "json"
    data_file: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/chordcoach/progress.json"
    )

    # Mastery
    mastery_window_size: int = Field(default=C.MASTERY_WINDOW_SIZE, ge=1)
    response_time_window_size: int = Field(default=C.RESPONSE_TIME_WINDOW_SIZE, ge=1)
    familiar_accuracy_threshold: float = Field(default=C.FAMILIAR_ACCURACY_THRESHOLD, ge=0, le=1)
    mastered_accuracy_threshold: float = Field(default=C.MASTERED_ACCURACY_THRESHOLD, ge=0, le=1)
    mastered_response_time_ms: float = Field(default=C.MASTERED_RESPONSE_TIME_THRESHOLD, ge=0)
    max_response_time_penalty_ms: float = Field(default=C.MAX_RESPONSE_TIME_PENALTY_MS, ge=0)

    # SM-2 tuning
    default_ease_factor: float = C.DEFAULT_EASE_FACTOR
    min_ease_factor: float = C.MIN_EASE_FACTOR
    max_ease_factor: float | None = None
    max_interval_mastered: float | None = None
    max_interval_learning: float | None = None

    # Queries & stats
    weak_threshold: float = Field(default=C.DEFAULT_WEAK_THRESHOLD, ge=0, le=1)
    review_batch_size: int = Field(default=C.DEFAULT_REVIEW_BATCH, ge=1)
    streak_timezone: str = "UTC"

    # Server
    host: str = "127.0.0.1"
    port: int = 8787

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins
        toml_file = next((f for f in _config_files() if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("data_file", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @field_validator("streak_timezone")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    def mastery_rules(self) -> MasteryRules:
        return MasteryRules(
            window_size=self.mastery_window_size,
            response_time_window_size=self.response_time_window_size,
            familiar_accuracy=self.familiar_accuracy_threshold,
            mastered_accuracy=self.mastered_accuracy_threshold,
            mastered_response_time_ms=self.mastered_response_time_ms,
        )

    def scheduler_params(self) -> SchedulerParams:
        return SchedulerParams(
            default_ease_factor=self.default_ease_factor,
            min_ease_factor=self.min_ease_factor,
            max_ease_factor=self.max_ease_factor,
            fast_response_time_ms=self.mastered_response_time_ms,
            slow_response_time_ms=self.max_response_time_penalty_ms,
            max_interval_mastered=self.max_interval_mastered,
            max_interval_learning=self.max_interval_learning,
        )

    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.streak_timezone)


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/chordcoach/config.toml (if exists)
    3. Environment variables (CHORDCOACH_*)
    4. cli_overrides (passed from Typer or the HTTP layer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
