from .analysis import REQUIRED_FIELDS, AnalysisResult, InvalidAnalysisPayload, MediaInfo
from .events import PIPELINE_STEPS, ProgressEvent, ProgressStep, TerminalEvent, utc_timestamp
from .session import AnalysisSession, SessionStatus

__all__ = [
    "AnalysisSession",
    "SessionStatus",
    "ProgressEvent",
    "ProgressStep",
    "TerminalEvent",
    "PIPELINE_STEPS",
    "utc_timestamp",
    "AnalysisResult",
    "InvalidAnalysisPayload",
    "MediaInfo",
    "REQUIRED_FIELDS",
]
