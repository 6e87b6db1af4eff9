from pydantic import BaseModel

from services.content_analysis import VARIANT_TEMPERATURE


class AnalyzeRequest(BaseModel):
    # Optional so a missing url reaches the coordinator and fails as a streamed ValidationError.
    url: str | None = None


class AnalysisBody(BaseModel):
    hook: str
    cta: str
    usp: str


class VariantRequest(BaseModel):
    transcript: str
    temperature: float = VARIANT_TEMPERATURE


class VariantResponse(BaseModel):
    analysis: AnalysisBody
    temperature: float


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime: float
    memory: dict[str, float]
    environment: str


class StatusResponse(BaseModel):
    service: str
    status: str
    timestamp: str
    version: str
    features: dict[str, str]
    supportedPlatforms: list[str]
