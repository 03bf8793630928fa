from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

# GELF payload fields that must never be produced by stripping a leading
# underscore from an additional field.
GELF_CORE_FIELDS = (
    "version",
    "host",
    "short_message",
    "full_message",
    "timestamp",
    "level",
    "facility",
    "line",
    "file",
)


class GelfInputConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(12201, ge=0, le=65535)

    remap: bool = True
    strip_leading_underscore: bool = True
    nested_objects: bool = False
    max_array_index: int = Field(4096, ge=0)
    reserved_fields: List[str] = Field(default_factory=lambda: list(GELF_CORE_FIELDS))

    max_datagram_size: int = Field(8192, ge=1, le=65535)
    reconnect_backoff_seconds: float = Field(5.0, ge=0.0)
    receive_timeout_seconds: float = Field(1.0, gt=0.0)
    chunk_timeout_seconds: float = Field(5.0, gt=0.0)

    # decoration
    type: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    add_field: Dict[str, Any] = Field(default_factory=dict)


class OutputConfig(BaseModel):
    type: Literal["stdout", "file", "http"] = "stdout"
    options: Dict[str, Any] = Field(default_factory=dict)
    batch_max_events: int = Field(200, ge=1)
    batch_max_seconds: float = Field(1.0, ge=0.0)


class AppConfig(BaseModel):
    input: GelfInputConfig = Field(default_factory=GelfInputConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    queue_max_size: int = Field(0, ge=0)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AppConfig":
        return cls.model_validate(dict(data))
