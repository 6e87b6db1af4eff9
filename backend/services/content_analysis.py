"""Hook / CTA / USP extraction from a transcript with an OpenAI chat model."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace

import openai
from openai import AsyncOpenAI

from models import AnalysisResult, InvalidAnalysisPayload
from services.errors import AnalysisError

logger = logging.getLogger(__name__)

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
VARIANT_TEMPERATURE = 1.2

SYSTEM_PROMPT = (
    "You are an expert content analyst specializing in social media video content. "
    "Your task is to analyze video transcripts and extract key marketing elements."
)

ANALYSIS_PROMPT = """
Analyze the following video transcript and extract three key marketing elements. Return your response as a JSON object with exactly these three fields:

**Instructions:**
1. **hook**: Identify the most attention-grabbing opening or compelling moment that would make viewers stop scrolling and watch. This should be the strongest hook from the video content.

2. **cta**: Extract or infer the main call-to-action. This could be explicit (like "subscribe", "buy now", "follow me") or implicit (what action the creator wants viewers to take).

3. **usp**: Determine the unique selling proposition or value proposition - what makes this content/creator/product unique or valuable compared to others.

**Requirements:**
- Each field should be a clear, concise string (50-150 characters)
- Focus on marketing impact and viewer engagement
- If any element is not clearly present, infer the most logical one based on context
- Return valid JSON format only

**Video Transcript:**
{transcript}

**Response Format:**
{{
  "hook": "Your identified hook here",
  "cta": "Your identified call-to-action here",
  "usp": "Your identified unique selling proposition here"
}}
""".strip()


@dataclass(frozen=True)
class AnalysisSettings:
    model: str = "gpt-4-turbo-preview"
    max_tokens: int = 1000
    temperature: float = 0.7

    def __post_init__(self) -> None:
        if not MIN_TEMPERATURE <= self.temperature <= MAX_TEMPERATURE:
            raise ValueError(
                f"temperature must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE}, got {self.temperature}"
            )
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")


def build_prompt(transcript: str) -> str:
    return ANALYSIS_PROMPT.format(transcript=transcript)


def parse_analysis(raw: str | None, *, tokens_used: int | None = None) -> AnalysisResult:
    """Parse and validate a model response. Any malformed or partial output raises AnalysisError."""
    if not raw:
        raise AnalysisError("Invalid analysis response: empty model output")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise AnalysisError("Invalid analysis response: output is not valid JSON", cause=exc) from exc
    try:
        return AnalysisResult.from_payload(payload, tokens_used=tokens_used)
    except InvalidAnalysisPayload as exc:
        raise AnalysisError(str(exc), cause=exc) from exc


class ContentAnalysisClient:
    """
    Runs the marketing-signal prompt.

    Settings are immutable; per-call overrides are passed as a settings value and
    never written back to the client.
    """

    def __init__(self, client: AsyncOpenAI, settings: AnalysisSettings | None = None) -> None:
        self._client = client
        self._settings = settings or AnalysisSettings()

    @property
    def settings(self) -> AnalysisSettings:
        return self._settings

    def with_settings(self, **changes) -> ContentAnalysisClient:
        """A new client sharing the same API connection with changed defaults."""
        return ContentAnalysisClient(self._client, replace(self._settings, **changes))

    async def analyze(self, transcript: str, *, settings: AnalysisSettings | None = None) -> AnalysisResult:
        settings = settings or self._settings
        if not transcript or not transcript.strip():
            raise AnalysisError("Cannot analyze an empty transcript")

        prompt = build_prompt(transcript)
        logger.info(
            "[content_analysis] Requesting analysis model=%s temperature=%.2f transcript_chars=%d",
            settings.model,
            settings.temperature,
            len(transcript),
        )

        try:
            completion = await self._client.chat.completions.create(
                model=settings.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=settings.max_tokens,
                temperature=settings.temperature,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as exc:
            logger.error("[content_analysis] Chat completion failed: %s", exc)
            raise AnalysisError(f"Content analysis failed: {exc}", cause=exc) from exc

        if not completion.choices:
            raise AnalysisError("Invalid analysis response: model returned no choices")
        raw = completion.choices[0].message.content
        usage = getattr(completion, "usage", None)
        tokens_used = getattr(usage, "total_tokens", None)

        result = parse_analysis(raw, tokens_used=tokens_used)
        logger.info(
            "[content_analysis] Analysis ok tokens=%s hook=%.50s... cta=%.50s... usp=%.50s...",
            tokens_used,
            result.hook,
            result.cta,
            result.usp,
        )
        return result

    async def analyze_variant(self, transcript: str, temperature: float = VARIANT_TEMPERATURE) -> AnalysisResult:
        """One analysis at a different temperature; the client's defaults stay as they were."""
        try:
            settings = replace(self._settings, temperature=temperature)
        except ValueError as exc:
            raise AnalysisError(str(exc), cause=exc) from exc
        logger.info("[content_analysis] Generating variant analysis temperature=%.2f", temperature)
        return await self.analyze(transcript, settings=settings)
