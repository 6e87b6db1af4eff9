from .audio import AudioExtractor
from .content_analysis import AnalysisSettings, ContentAnalysisClient
from .coordinator import SessionCoordinator
from .downloader import MediaAcquirer, detect_platform
from .gcs import StoragePublisher, generate_signed_url, get_bucket_name
from .progress import ProgressStream, encode_sse
from .transcriber import TranscriptionClient

__all__ = [
    "AnalysisSettings",
    "AudioExtractor",
    "ContentAnalysisClient",
    "MediaAcquirer",
    "ProgressStream",
    "SessionCoordinator",
    "StoragePublisher",
    "TranscriptionClient",
    "detect_platform",
    "encode_sse",
    "generate_signed_url",
    "get_bucket_name",
]
