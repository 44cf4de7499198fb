"""
Chronicle settings - runtime configuration in one validated model

Settings are plain data: they can be built in code, loaded from CHRONICLE_*
environment variables, and passed to the Chronicle facade.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class ChronicleSettings(BaseModel):
    """
    Configuration for a Chronicle engine

    The aggregate_types mapping is the external identifier-type ->
    aggregate-type configuration consumed by the AggregateFactory. Aggregates
    registered on the facade add their own default entry when none is configured.
    """

    database_path: Path | None = Field(
        default=None,
        description="SQLite database file; None keeps events in memory",
    )

    environment: Literal["development", "production"] = Field(
        default="development",
        description="Controls log rendering defaults and stack traces",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level name",
    )

    json_logs: bool | None = Field(
        default=None,
        description="JSON log output; None means 'JSON in production only'",
    )

    metrics_port: int | None = Field(
        default=None,
        ge=1,
        le=65535,
        description="Port for the Prometheus metrics endpoint; None disables it",
    )

    sqlite_lock_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts for SQLite operations that hit 'database is locked'",
    )

    aggregate_types: dict[str, str] = Field(
        default_factory=dict,
        description="Identifier-type key -> aggregate-type key",
    )

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level {value!r}")
        return value

    @property
    def use_json_logs(self) -> bool:
        if self.json_logs is not None:
            return self.json_logs
        return self.environment == "production"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ChronicleSettings":
        """
        Build settings from CHRONICLE_* variables

        Recognised: CHRONICLE_DATABASE_PATH, CHRONICLE_ENVIRONMENT,
        CHRONICLE_LOG_LEVEL, CHRONICLE_JSON_LOGS, CHRONICLE_METRICS_PORT,
        CHRONICLE_SQLITE_LOCK_RETRIES and CHRONICLE_AGGREGATE_TYPES
        (``BasketId=Basket,OrderId=Order``). Unset variables keep defaults.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        for field_name in (
            "database_path",
            "environment",
            "log_level",
            "json_logs",
            "metrics_port",
            "sqlite_lock_retries",
        ):
            raw = env.get(f"CHRONICLE_{field_name.upper()}")
            if raw not in (None, ""):
                values[field_name] = raw

        raw_mapping = env.get("CHRONICLE_AGGREGATE_TYPES", "")
        if raw_mapping:
            values["aggregate_types"] = parse_aggregate_types(raw_mapping)

        return cls.model_validate(values)


def parse_aggregate_types(raw: str) -> dict[str, str]:
    """
    Parse ``IdKey=AggregateKey`` pairs separated by commas

    Raises:
        ValueError: On an entry without '=' or with an empty side
    """
    mapping: dict[str, str] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        id_key, sep, aggregate_key = entry.partition("=")
        if not sep or not id_key.strip() or not aggregate_key.strip():
            raise ValueError(f"Invalid aggregate type mapping entry: {entry!r}")
        mapping[id_key.strip()] = aggregate_key.strip()
    return mapping
