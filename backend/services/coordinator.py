"""
Session coordinator: drives one analysis request through the fixed stage order.

download -> upload -> extraction -> transcription -> analysis

Every run writes its progress into a ProgressStream and closes it with exactly
one terminal event. Temp files are tracked on the session as soon as a stage
produces them and are deleted after the terminal event, whatever the outcome.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, TypeVar

from app.logging_setup import SessionLoggerAdapter, session_logger
from models import (
    PIPELINE_STEPS,
    AnalysisSession,
    ProgressEvent,
    ProgressStep,
    SessionStatus,
    TerminalEvent,
    utc_timestamp,
)
from services.audio import AudioExtractor
from services.content_analysis import ContentAnalysisClient
from services.downloader import MediaAcquirer, detect_platform
from services.errors import STAGE_ERRORS, CleanupError, PipelineError, ValidationError
from services.gcs import StoragePublisher
from services.progress import ProgressStream
from services.transcriber import TranscriptionClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSCRIPT_PREVIEW_CHARS = 100


def _file_size(path) -> int | None:
    try:
        return path.stat().st_size
    except OSError:
        return None


class SessionCoordinator:
    def __init__(
        self,
        *,
        acquirer: MediaAcquirer,
        publisher: StoragePublisher,
        extractor: AudioExtractor,
        transcriber: TranscriptionClient,
        analyzer: ContentAnalysisClient,
    ) -> None:
        self._acquirer = acquirer
        self._publisher = publisher
        self._extractor = extractor
        self._transcriber = transcriber
        self._analyzer = analyzer

    async def run(self, source_url: str | None, stream: ProgressStream) -> AnalysisSession:
        """Run one session to its terminal event. Never raises for pipeline failures."""
        session = AnalysisSession(source_url=(source_url or "").strip())
        stream.session_id = session.session_id
        log = session_logger(logger, session.session_id)
        log.info("[coordinator] Session started url=%s", session.source_url or "(empty)")

        try:
            try:
                result = await self._run_stages(session, stream, log)
            except PipelineError as exc:
                self._fail(session, stream, exc, log)
            except Exception as exc:
                # Anything escaping outside a stage still has to close the stream.
                error_cls = STAGE_ERRORS.get(session.current_step, PipelineError)
                wrapped = error_cls(f"Unexpected failure: {exc}", stage=session.current_step, cause=exc)
                log.exception("[coordinator] Unexpected error at step=%s", session.current_step.value)
                self._fail(session, stream, wrapped, log)
            else:
                session.status = SessionStatus.COMPLETED
                self._emit(stream, session, ProgressStep.COMPLETE, "Video analysis completed successfully", result)
                stream.finish(TerminalEvent.final(result))
                log.info("[coordinator] Session completed in %s", result["processingTime"])
        finally:
            self._cleanup(session, log)

        return session

    async def _run_stages(
        self,
        session: AnalysisSession,
        stream: ProgressStream,
        log: SessionLoggerAdapter,
    ) -> dict[str, Any]:
        if not session.source_url:
            raise ValidationError("Video URL is required")

        session.platform = detect_platform(session.source_url)
        self._emit(
            stream,
            session,
            ProgressStep.VALIDATION,
            "Validating video URL",
            {"url": session.source_url, "platform": session.platform},
        )
        log.info("[coordinator] Platform detected: %s", session.platform)

        # download
        self._emit(stream, session, ProgressStep.DOWNLOAD, "Starting video download...")
        session.video_path = await self._stage(
            session,
            ProgressStep.DOWNLOAD,
            self._acquirer.download(session.source_url, file_id=f"{session.session_id}-video"),
        )
        self._emit(
            stream,
            session,
            ProgressStep.DOWNLOAD,
            "Video downloaded successfully",
            {
                "path": str(session.video_path),
                "size": _file_size(session.video_path),
                "platform": session.platform,
            },
        )

        # upload
        self._emit(stream, session, ProgressStep.UPLOAD, "Uploading video to storage...")
        session.published_url = await self._stage(
            session,
            ProgressStep.UPLOAD,
            self._publisher.publish(session.video_path, session.session_id),
        )
        self._emit(stream, session, ProgressStep.UPLOAD, "Video uploaded to storage", {"url": session.published_url})

        # extraction
        self._emit(stream, session, ProgressStep.EXTRACTION, "Extracting audio from video...")
        session.audio_path = await self._stage(
            session,
            ProgressStep.EXTRACTION,
            self._extractor.extract(session.video_path, file_id=f"{session.session_id}-audio"),
        )
        self._emit(
            stream,
            session,
            ProgressStep.EXTRACTION,
            "Audio extracted successfully",
            {"path": str(session.audio_path), "size": _file_size(session.audio_path)},
        )

        # transcription
        self._emit(stream, session, ProgressStep.TRANSCRIPTION, "Transcribing audio with OpenAI Whisper...")
        session.transcript = await self._stage(
            session,
            ProgressStep.TRANSCRIPTION,
            self._transcriber.transcribe(session.audio_path),
        )
        self._emit(
            stream,
            session,
            ProgressStep.TRANSCRIPTION,
            "Audio transcribed successfully",
            {
                "length": len(session.transcript),
                "preview": session.transcript[:TRANSCRIPT_PREVIEW_CHARS] + "...",
            },
        )

        # analysis
        self._emit(stream, session, ProgressStep.ANALYSIS, "Analyzing content...")
        session.analysis = await self._stage(
            session,
            ProgressStep.ANALYSIS,
            self._analyzer.analyze(session.transcript),
        )
        self._emit(
            stream,
            session,
            ProgressStep.ANALYSIS,
            "Content analysis completed",
            {**session.analysis.to_dict(), "tokensUsed": session.analysis.tokens_used},
        )

        session.current_step = ProgressStep.COMPLETE
        return self._result(session)

    async def _stage(self, session: AnalysisSession, step: ProgressStep, call: Awaitable[T]) -> T:
        session.current_step = step
        try:
            return await call
        except PipelineError as exc:
            if exc.stage is None:
                exc.stage = step
            raise
        except Exception as exc:
            error_cls = STAGE_ERRORS[step]
            raise error_cls(f"{step.value} failed: {exc}", stage=step, cause=exc) from exc

    def _emit(
        self,
        stream: ProgressStream,
        session: AnalysisSession,
        step: ProgressStep,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        stream.publish(ProgressEvent(session_id=session.session_id, step=step, message=message, data=data))

    def _result(self, session: AnalysisSession) -> dict[str, Any]:
        return {
            "sessionId": session.session_id,
            "success": True,
            "processingTime": session.processing_time(),
            "videoUrl": session.published_url,
            "transcript": session.transcript,
            "analysis": session.analysis.to_dict(),
            "metadata": {
                "originalUrl": session.source_url,
                "platform": session.platform,
                "processedAt": utc_timestamp(),
                "steps": [step.value for step in PIPELINE_STEPS],
            },
        }

    def _fail(
        self,
        session: AnalysisSession,
        stream: ProgressStream,
        exc: PipelineError,
        log: SessionLoggerAdapter,
    ) -> None:
        session.status = SessionStatus.FAILED
        stage = exc.stage or session.current_step
        envelope = {
            "sessionId": session.session_id,
            "success": False,
            "error": exc.message,
            "stage": stage.value,
            "processingTime": session.processing_time(),
            "timestamp": utc_timestamp(),
        }
        log.error("[coordinator] Session failed at stage=%s: %s", stage.value, exc.message)
        self._emit(stream, session, ProgressStep.ERROR, "Analysis failed", envelope)
        stream.finish(TerminalEvent.error(envelope))

    def _cleanup(self, session: AnalysisSession, log: SessionLoggerAdapter) -> None:
        """Delete every temp file the session owns. Each deletion is independent; failures are only logged."""
        for path in session.temp_files:
            try:
                path.unlink(missing_ok=True)
                log.info("[coordinator] Cleaned up %s", path)
            except OSError as exc:
                error = CleanupError(f"Failed to delete temp file {path}: {exc}", cause=exc)
                log.warning("[coordinator] %s", error.message)
