"""Service and port models."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, field_validator

SERVICE_TYPES = ("frontend", "backend", "admin", "api", "unknown")


@dataclass(frozen=True, slots=True)
class ServiceInfo:
    name: str
    type: str
    location: str


@dataclass(frozen=True, slots=True)
class ServiceAssignment:
    service_name: str
    service_type: str
    port: int
    location: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.service_name,
            "type": self.service_type,
            "port": self.port,
            "location": self.location,
        }


class ServicePattern(BaseModel):
    """One ordered entry of the service classification table."""

    type: str = Field(..., description="Service type assigned when the pattern matches.")
    pattern: str = Field(..., description="Case-insensitive regular expression matched against directory names.")

    @field_validator("type")
    @classmethod
    def _normalize_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("Service type must not be empty")
        return normalized

    @field_validator("pattern")
    @classmethod
    def _validate_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid service pattern {value!r}: {exc}") from exc
        return value

    def matches(self, name: str) -> bool:
        return re.search(self.pattern, name, re.IGNORECASE) is not None


__all__ = ["SERVICE_TYPES", "ServiceAssignment", "ServiceInfo", "ServicePattern"]
