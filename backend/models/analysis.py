from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

REQUIRED_FIELDS = ("hook", "cta", "usp")


class InvalidAnalysisPayload(ValueError):
    """Raised when model output does not carry all three marketing fields."""


@dataclass(frozen=True)
class AnalysisResult:
    hook: str                  # attention-grabbing opening
    cta: str                   # call to action
    usp: str                   # unique selling proposition
    tokens_used: int | None = field(default=None, compare=False)

    @classmethod
    def from_payload(cls, payload: Any, *, tokens_used: int | None = None) -> AnalysisResult:
        """
        Build a result from parsed model JSON.

        Every field must be a string that is non-empty after trimming; a partial
        result is never returned.
        """
        if not isinstance(payload, dict):
            raise InvalidAnalysisPayload("Invalid analysis response: expected a JSON object")
        values: dict[str, str] = {}
        for name in REQUIRED_FIELDS:
            value = payload.get(name)
            if not isinstance(value, str):
                raise InvalidAnalysisPayload(
                    f"Invalid analysis response: missing or invalid '{name}' field"
                )
            if not value.strip():
                raise InvalidAnalysisPayload(f"Invalid analysis response: '{name}' field is empty")
            values[name] = value.strip()
        return cls(tokens_used=tokens_used, **values)

    def to_dict(self) -> dict[str, str]:
        return {"hook": self.hook, "cta": self.cta, "usp": self.usp}


@dataclass
class MediaInfo:
    duration: float | None     # seconds
    codec: str | None
    channels: int | None
    sample_rate: int | None
    bit_rate: int | None
    size: int | None           # bytes
