from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ProgressStep(str, Enum):
    VALIDATION = "validation"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    EXTRACTION = "extraction"
    TRANSCRIPTION = "transcription"
    ANALYSIS = "analysis"
    COMPLETE = "complete"
    ERROR = "error"


# Ordered stage list reported in the result metadata.
PIPELINE_STEPS = [
    ProgressStep.DOWNLOAD,
    ProgressStep.UPLOAD,
    ProgressStep.EXTRACTION,
    ProgressStep.TRANSCRIPTION,
    ProgressStep.ANALYSIS,
]


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a trailing Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ProgressEvent:
    session_id: str
    step: ProgressStep
    message: str                       # human-readable
    data: dict[str, Any] | None = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "step": self.step.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "data": self.data,
        }


@dataclass
class TerminalEvent:
    type: str                          # "final" | "error"
    payload: dict[str, Any]

    @classmethod
    def final(cls, result: dict[str, Any]) -> TerminalEvent:
        return cls(type="final", payload=result)

    @classmethod
    def error(cls, error: dict[str, Any]) -> TerminalEvent:
        return cls(type="error", payload=error)

    @property
    def is_success(self) -> bool:
        return self.type == "final"

    def to_dict(self) -> dict[str, Any]:
        key = "result" if self.is_success else "error"
        return {"type": self.type, key: self.payload}
