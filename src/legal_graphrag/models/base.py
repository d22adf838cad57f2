"""
Shared model building blocks.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON while using snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json_dict(self, **kwargs) -> dict:
        """Dump using wire (camelCase) names."""
        return self.model_dump(by_alias=True, mode="json", **kwargs)


# =============================================================================
# Outcome
# =============================================================================


class OutcomeSource(str, Enum):
    """Which path produced a pipeline value."""

    LIVE = "live"
    FALLBACK = "fallback"
    FAILED = "failed"


@dataclass
class Outcome(Generic[T]):
    """
    A pipeline value together with the path that produced it.

    ``live`` means the upstream service answered, ``fallback`` means a
    substitute value was used (``reason`` says why) and ``failed`` carries no
    value at all.
    """

    value: T | None
    source: OutcomeSource
    reason: str | None = None

    @classmethod
    def live(cls, value: T) -> "Outcome[T]":
        return cls(value=value, source=OutcomeSource.LIVE)

    @classmethod
    def fallback(cls, value: T, reason: str) -> "Outcome[T]":
        return cls(value=value, source=OutcomeSource.FALLBACK, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "Outcome[T]":
        return cls(value=None, source=OutcomeSource.FAILED, reason=reason)

    @property
    def is_live(self) -> bool:
        return self.source == OutcomeSource.LIVE

    @property
    def is_fallback(self) -> bool:
        return self.source == OutcomeSource.FALLBACK

    @property
    def is_failed(self) -> bool:
        return self.source == OutcomeSource.FAILED
