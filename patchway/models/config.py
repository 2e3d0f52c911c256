"""
Configuration models for Patchway.

Supports configuration via YAML file, environment variables, or programmatic setup.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class QueueNames(BaseModel):
    """Names of the queues connecting the four roles."""

    goals: str = Field(default="goalQueue", description="Planner input")
    tasks: str = Field(default="taskQueue", description="Executor input")
    patches: str = Field(default="patchQueue", description="Auditor input")
    reviews: str = Field(default="reviewQueue", description="Committer input")
    rebase: str = Field(
        default="rebaseQueue",
        description="Patches that lost an optimistic-concurrency race",
    )


class QueueConfig(BaseModel):
    """Queue broker configuration."""

    backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Queue backend (memory or sqlite)"
    )
    database: str = Field(
        default="./.patchway/queue.db",
        description="SQLite database path (sqlite backend only)"
    )
    lease_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=3600.0,
        description="How long a pulled item stays claimed before it is reclaimable"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Failed deliveries before an item is dead-lettered"
    )
    names: QueueNames = Field(default_factory=QueueNames)


class PipelineConfig(BaseModel):
    """Role runner behavior."""

    empty_dag_policy: Literal["fallback", "reject"] = Field(
        default="fallback",
        description="What the planner does with a goal that carries no tasks"
    )
    fallback_tool: str = Field(
        default="verify_state",
        description="Tool used for the trivial task of a goal without a DAG"
    )
    max_string_length: int = Field(
        default=4096,
        ge=1,
        description="Longest string argument the validator accepts"
    )
    event_history: int = Field(
        default=1000,
        ge=1,
        description="Pipeline events kept in memory"
    )
    max_cycles: int = Field(
        default=100,
        ge=1,
        description="Upper bound on driver cycles when draining the pipeline"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level"
    )
    file: str | None = Field(
        default=None,
        description="Log file path (None = console only)"
    )
    json_format: bool = Field(
        default=False,
        description="Use JSON format for logs"
    )


class PatchwayConfig(BaseSettings):
    """
    Main Patchway configuration.

    Configuration can be loaded from:
    1. YAML file (patchway.yaml or config.yaml)
    2. Environment variables (PATCHWAY_* prefix)
    3. Programmatic setup
    """

    model_config = SettingsConfigDict(
        env_prefix="PATCHWAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    queue: QueueConfig = Field(default_factory=QueueConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> "PatchwayConfig":
        """
        Load configuration from file and environment.

        Priority (highest to lowest):
        1. Environment variables
        2. Specified config file
        3. Default config files (patchway.yaml, config.yaml)
        4. Default values
        """
        config_data: dict = {}

        if config_path:
            config_file = Path(config_path)
            if config_file.exists():
                config_data = cls._load_yaml(config_file)
        else:
            for filename in ["patchway.yaml", "config.yaml", "patchway.yml", "config.yml"]:
                config_file = Path(filename)
                if config_file.exists():
                    config_data = cls._load_yaml(config_file)
                    break

        return cls(**config_data)

    @staticmethod
    def _load_yaml(path: Path) -> dict:
        """Load YAML configuration file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if data else {}

    def save(self, path: str | Path) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_none=True),
                f,
                default_flow_style=False,
                sort_keys=False,
            )
