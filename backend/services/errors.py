"""Error taxonomy for the analysis pipeline. One class per stage, each tagged with its step."""

from __future__ import annotations

from models import ProgressStep


class PipelineError(Exception):
    """Base class for failures surfaced as the session's terminal error."""

    stage: ProgressStep | None = None

    def __init__(
        self,
        message: str,
        *,
        stage: ProgressStep | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        self.cause = cause

    def to_dict(self) -> dict[str, str | None]:
        return {
            "stage": self.stage.value if self.stage else None,
            "message": self.message,
            "cause": type(self.cause).__name__ if self.cause else None,
        }


class ValidationError(PipelineError):
    stage = ProgressStep.VALIDATION


class DownloadError(PipelineError):
    stage = ProgressStep.DOWNLOAD


class StorageError(PipelineError):
    stage = ProgressStep.UPLOAD


class ExtractionError(PipelineError):
    stage = ProgressStep.EXTRACTION


class TranscriptionError(PipelineError):
    stage = ProgressStep.TRANSCRIPTION


class AnalysisError(PipelineError):
    stage = ProgressStep.ANALYSIS


class CleanupError(PipelineError):
    """Temp file deletion failed. Logged only, never raised to the caller."""


class StreamClosedError(RuntimeError):
    """A write was attempted after the session's terminal event."""


STAGE_ERRORS: dict[ProgressStep, type[PipelineError]] = {
    ProgressStep.VALIDATION: ValidationError,
    ProgressStep.DOWNLOAD: DownloadError,
    ProgressStep.UPLOAD: StorageError,
    ProgressStep.EXTRACTION: ExtractionError,
    ProgressStep.TRANSCRIPTION: TranscriptionError,
    ProgressStep.ANALYSIS: AnalysisError,
}
