import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from .analysis import AnalysisResult
from .events import ProgressStep


class SessionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class AnalysisSession:
    source_url: str
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_monotonic: float = field(default_factory=time.monotonic, repr=False)
    status: SessionStatus = SessionStatus.RUNNING
    current_step: ProgressStep = ProgressStep.VALIDATION
    platform: str = "Unknown"
    video_path: Path | None = None
    audio_path: Path | None = None
    published_url: str | None = None
    transcript: str | None = None
    analysis: AnalysisResult | None = None

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_monotonic) * 1000)

    def processing_time(self) -> str:
        """Elapsed time in the "<ms>ms" form used on the wire."""
        return f"{self.elapsed_ms()}ms"

    @property
    def temp_files(self) -> list[Path]:
        return [p for p in (self.video_path, self.audio_path) if p is not None]
