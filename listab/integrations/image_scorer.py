"""
Image Scorer Integration

Per-image quality assessment for listing photos. The vision scorer asks a
multimodal chat model to grade each photo; the fallback scorer produces
deterministic synthetic grades when no vision backend is configured or
the backend fails.
"""

import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
import structlog

from listab.config import Settings, get_settings
from listab.errors import CollaboratorError

logger = structlog.get_logger()


class ImageQuality(str, Enum):
    """Coarse image quality bucket."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class ImageAssessment:
    """Quality assessment of one image."""
    url: str
    score: int  # 0-100
    cover_score: int  # suitability as the cover photo, 0-100
    quality: ImageQuality
    defects: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "score": self.score,
            "cover_score": self.cover_score,
            "quality": self.quality.value,
            "defects": self.defects,
            "recommendations": self.recommendations,
            "description": self.description,
        }


def quality_bucket(score: float) -> ImageQuality:
    """Map a 0-100 score to a quality bucket."""
    if score > 70:
        return ImageQuality.HIGH
    if score > 40:
        return ImageQuality.MEDIUM
    return ImageQuality.LOW


def _clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, value)))


class ImageScorer(ABC):
    """Assesses a list of images; assessment i belongs to image i."""

    @abstractmethod
    async def assess(self, images: List[str], category: str) -> List[ImageAssessment]:
        """Assess every image in input order. Empty input yields an empty list."""


class FallbackImageScorer(ImageScorer):
    """
    Deterministic synthetic scorer.

    Earlier images score higher: 90 - 5*i plus a 0..9 jitter derived from
    the image reference, clamped to [10, 100]. The first image is the
    preferred cover.
    """

    @staticmethod
    def _jitter(url: str) -> int:
        digest = hashlib.sha256(url.encode()).hexdigest()
        return int(digest[:8], 16) % 10

    async def assess(self, images: List[str], category: str) -> List[ImageAssessment]:
        return self.assess_sync(images, category)

    def assess_sync(self, images: List[str], category: str) -> List[ImageAssessment]:
        assessments = []
        for i, url in enumerate(images):
            score = _clamp(90 - 5 * i + self._jitter(url), low=10)
            cover_score = 90 if i == 0 else _clamp(70 - 5 * i)
            assessments.append(ImageAssessment(
                url=url,
                score=score,
                cover_score=cover_score,
                quality=quality_bucket(score),
                defects=["Low quality"] if score < 50 else [],
                recommendations=["Use as cover photo"] if i == 0 else ["Supporting photo"],
                description=f"Photo #{i + 1} for category {category}",
            ))
        return assessments


class VisionImageScorer(ImageScorer):
    """
    Scorer backed by an OpenAI-compatible vision chat model.

    Any transport or parsing failure is raised as CollaboratorError so the
    caller can substitute the fallback scorer.
    """

    PROMPT = (
        "You are a marketplace listing photo expert. Assess these photos for a "
        "listing in the category \"{category}\". For every photo give:\n"
        "1. overall quality score (0-100)\n"
        "2. suitability as the cover photo (0-100)\n"
        "3. quality: high/medium/low\n"
        "4. defects (low resolution, poor lighting, out of focus, watermarks)\n"
        "5. recommendations\n"
        "6. a short description of what the photo shows\n\n"
        "Answer with a JSON object: {{\"images\": [{{\"index\": 0, \"score\": 85, "
        "\"cover_score\": 90, \"quality\": \"high\", \"defects\": [], "
        "\"recommendations\": [\"Use as cover photo\"], \"description\": \"Product overview\"}}]}}"
    )

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()

    async def assess(self, images: List[str], category: str) -> List[ImageAssessment]:
        if not images:
            return []

        content: List[Dict[str, Any]] = [
            {"type": "text", "text": self.PROMPT.format(category=category)},
        ]
        content.extend(
            {"type": "image_url", "image_url": {"url": url, "detail": "low"}}
            for url in images
        )

        try:
            client = await self._get_http_client()
            response = await client.post(
                "/chat/completions",
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": content}],
                    "max_tokens": 2000,
                    "response_format": {"type": "json_object"},
                },
            )
            response.raise_for_status()
            body = response.json()
            parsed = json.loads(body["choices"][0]["message"]["content"])
            return self._parse_assessments(parsed, images)
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
            raise CollaboratorError("image_scorer", str(e), cause=e) from e

    def _parse_assessments(self, parsed: Any, images: List[str]) -> List[ImageAssessment]:
        """Map model output back onto the input order."""
        if isinstance(parsed, dict):
            items = parsed.get("images") or parsed.get("analysis") or []
        else:
            items = parsed
        if not isinstance(items, list):
            raise CollaboratorError("image_scorer", "unexpected response shape")

        by_index: Dict[int, Dict[str, Any]] = {}
        for position, item in enumerate(items):
            if not isinstance(item, dict):
                continue
            index = item.get("index", position)
            if isinstance(index, int) and 0 <= index < len(images):
                by_index.setdefault(index, item)

        if len(by_index) != len(images):
            raise CollaboratorError(
                "image_scorer",
                f"assessed {len(by_index)} of {len(images)} images",
            )

        assessments = []
        for i, url in enumerate(images):
            item = by_index[i]
            score = _clamp(item.get("score", 50))
            try:
                quality = ImageQuality(item.get("quality"))
            except ValueError:
                quality = quality_bucket(score)
            assessments.append(ImageAssessment(
                url=url,
                score=score,
                cover_score=_clamp(item.get("cover_score", item.get("mainPhotoScore", 50))),
                quality=quality,
                defects=list(item.get("defects") or item.get("issues") or []),
                recommendations=list(item.get("recommendations") or []),
                description=item.get("description") or "",
            ))
        return assessments


def get_image_scorer(settings: Optional[Settings] = None) -> ImageScorer:
    """Vision scorer when configured, fallback scorer otherwise."""
    settings = settings or get_settings()
    if settings.image_scorer_enabled and settings.openai_api_key:
        return VisionImageScorer(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.vision_model,
            timeout=settings.image_scorer_timeout,
        )

    logger.info("Vision scorer not configured, using fallback scorer")
    return FallbackImageScorer()
