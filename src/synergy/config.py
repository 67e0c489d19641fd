"""
Engine configuration.

Options can be given directly, from binding-style dicts using the camelCase
keys of the original host API, or from environment variables (optionally
loaded from a ``.env`` file).
"""

import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional, Union

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from synergy.attention.value import (
    DEFAULT_DECAY_RATE,
    DEFAULT_LTI,
    DEFAULT_STI,
    MEMORY_REFERENCE_BYTES,
    STI_FLOOR,
)
from synergy.observability import setup_logging


class EngineConfig(BaseModel):
    """Recognized options of the cognitive synergy engine."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    cognitive_tick_ms: float = Field(
        5.0, gt=0,
        validation_alias=AliasChoices("cognitive_tick_ms", "cognitiveTickMs", "cognitiveTick"),
        description="Timer interval for attention decay/update",
    )
    worker_threads: int = Field(
        4, ge=1,
        validation_alias=AliasChoices("worker_threads", "workerThreads"),
        description="Background I/O worker count",
    )
    max_microtasks_per_slice: int = Field(
        100, ge=1,
        validation_alias=AliasChoices(
            "max_microtasks_per_slice", "maxMicrotasksPerSlice", "maxMicrotasks"
        ),
        description="Per-iteration slice budget passed to run_slice",
    )
    attention_based_scheduling: bool = Field(
        True,
        validation_alias=AliasChoices(
            "attention_based_scheduling", "attentionBasedScheduling", "attentionBased"
        ),
    )
    enable_monitoring: bool = Field(
        True,
        validation_alias=AliasChoices("enable_monitoring", "enableMonitoring", "monitoring"),
    )

    decay_rate: float = Field(DEFAULT_DECAY_RATE, gt=0, le=1)
    sti_floor: float = Field(STI_FLOOR, ge=0)
    memory_reference_bytes: int = Field(MEMORY_REFERENCE_BYTES, gt=0)
    default_sti: float = DEFAULT_STI
    default_lti: float = DEFAULT_LTI
    history_limit: int = Field(1000, ge=0)

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    @property
    def tick_interval(self) -> float:
        """Timer interval in seconds."""
        return self.cognitive_tick_ms / 1000.0

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "EngineConfig":
        """Build a config from a binding-style dict; unknown keys are ignored."""
        return cls.model_validate(dict(options or {}))

    @classmethod
    def from_env(cls, prefix: str = "SYNERGY_",
                 env_file: Optional[Union[str, Path]] = None) -> "EngineConfig":
        """
        Build a config from environment variables.

        Variables are the upper-cased field names with ``prefix`` prepended,
        e.g. ``SYNERGY_COGNITIVE_TICK_MS``. Values from ``env_file`` never
        override variables that are already set.

        Args:
            prefix: Variable name prefix
            env_file: Optional path of a dotenv file to load first

        Returns:
            EngineConfig built from the environment
        """
        if env_file is not None:
            load_dotenv(env_file, override=False)

        options: Dict[str, str] = {}
        for name in cls.model_fields:
            value = os.getenv(f"{prefix}{name.upper()}")
            if value is not None:
                options[name] = value
        return cls.model_validate(options)

    def configure_logging(self, service_name: str = "cognitive-synergy") -> None:
        """Apply ``log_level`` and ``log_format`` through setup_logging."""
        setup_logging(log_level=self.log_level, log_format=self.log_format,
                      service_name=service_name)
