"""
Pydantic models for pipeline configuration, description and run metrics.
"""

import logging
import os
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ENV_PREFIX = "PIPELINE_TRANSFORM_"


class SourceKind(str, Enum):
    """How a pipeline source is pulled"""
    BYTES = "bytes"
    ASYNC = "async"
    SYNC = "sync"


class PipelineSettings(BaseModel):
    """Process-wide defaults captured by each pipeline at construction."""
    log_level: str = Field("INFO", description="Level for the package logger")
    inspect_level: str = Field("INFO", description="Level used by the default inspect sink")
    byte_chunk_size: Optional[int] = Field(
        None,
        description="Split byte sources into chunks of this size; whole buffer when unset",
        ge=1
    )
    close_source: bool = Field(
        True,
        description="Close the stage chain and a closable source when a pull ends"
    )

    model_config = ConfigDict(validate_assignment=True)

    @field_validator('log_level', 'inspect_level')
    @classmethod
    def validate_level(cls, v):
        """Accept standard logging level names in any case."""
        name = str(v).upper()
        if not isinstance(logging.getLevelName(name), int):
            raise ValueError(f"Unknown logging level: {v}")
        return name

    @property
    def inspect_levelno(self) -> int:
        return logging.getLevelName(self.inspect_level)

    @classmethod
    def from_env(cls, environ=None) -> "PipelineSettings":
        """Build settings from PIPELINE_TRANSFORM_* environment variables."""
        environ = os.environ if environ is None else environ
        values = {}

        for field_name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + field_name.upper())
            if raw is None or raw == "":
                continue
            if field_name == "close_source":
                values[field_name] = raw.strip().lower() in ("1", "true", "yes", "on")
            else:
                values[field_name] = raw

        return cls(**values)


_settings: Optional[PipelineSettings] = None


def get_settings() -> PipelineSettings:
    """Return the process-wide settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = PipelineSettings.from_env()
    return _settings


def configure(**overrides) -> PipelineSettings:
    """Replace the process-wide settings with a copy carrying ``overrides``."""
    global _settings
    current = get_settings()
    _settings = PipelineSettings(**{**current.model_dump(), **overrides})
    return _settings


def reset_settings() -> None:
    """Forget the process-wide settings so the next access re-reads the environment."""
    global _settings
    _settings = None


class StageInfo(BaseModel):
    """One stage as reported by PipelineTransform.describe()."""
    index: int = Field(..., ge=0)
    name: str
    detail: Optional[str] = None


class PipelineDescription(BaseModel):
    """Source kind plus the ordered stage list of a pipeline."""
    source_kind: SourceKind
    stages: List[StageInfo] = Field(default_factory=list)

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]


OPERATION_TYPES = (
    "map", "flat_map", "flat", "filter", "of_type", "concat", "for_each",
    "inspect", "batch", "chunk", "take", "skip",
)


class OperationSpec(BaseModel):
    """Declarative description of a single builder call."""
    type: str = Field(..., description="Builder method name")
    fn: Optional[Callable[..., Any]] = Field(None, description="Callback for map/filter/flat_map/for_each")
    size: Optional[int] = Field(None, description="Group size for batch/chunk", ge=1)
    count: Optional[int] = Field(None, description="Item count for take/skip")
    values: Tuple[Any, ...] = Field(default_factory=tuple, description="Extra values for concat")
    labels: Tuple[Any, ...] = Field(default_factory=tuple, description="Labels for inspect")
    types: Tuple[Type[Any], ...] = Field(default_factory=tuple, description="Accepted types for of_type")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        if v not in OPERATION_TYPES:
            raise ValueError(f"Unknown operation type: {v}")
        return v

    @model_validator(mode='after')
    def validate_arguments(self):
        """Each operation type needs its own argument."""
        if self.type in ("map", "flat_map", "filter", "for_each") and self.fn is None:
            raise ValueError(f"{self.type} requires fn")
        if self.type in ("batch", "chunk") and self.size is None:
            raise ValueError(f"{self.type} requires size")
        if self.type in ("take", "skip") and self.count is None:
            raise ValueError(f"{self.type} requires count")
        if self.type == "skip" and self.count < 0:
            raise ValueError("skip requires a non-negative count")
        if self.type == "of_type" and not self.types:
            raise ValueError("of_type requires at least one type")
        return self


class RunMetrics(BaseModel):
    """Timing and memory of one terminal run."""
    operation: str
    execution_time_ms: float = Field(..., ge=0)
    peak_memory_mb: float = Field(..., ge=0)
    result_size: Optional[int] = Field(None, ge=0)
    success: bool = True
    error: Optional[str] = None
