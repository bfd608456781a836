# 🤖 AI Image Classifier Client
# Talks to the external trust-scoring service over HTTP

import asyncio
import logging
import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Dict, Optional

import aiohttp

from civic_eye.core.config import get_ai_service_url, AI_TIMEOUT_SECONDS
from civic_eye.core.exceptions import ClassifierError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifierResult:
    trust_score: float
    explanation: Dict[str, Any] = field(default_factory=dict)


def parse_classifier_payload(payload: Any) -> ClassifierResult:
    """
    Validate the classifier response body.

    Expected shape: {"trust_score": <number in [0, 100]>, "explanation": {...}?}.
    Any other shape is a contract violation.
    """
    if not isinstance(payload, dict):
        raise ClassifierError("AI service returned an unexpected payload")

    trust_score = payload.get("trust_score")
    if isinstance(trust_score, bool) or not isinstance(trust_score, Real):
        raise ClassifierError("AI service response is missing a numeric trust_score")
    if math.isnan(trust_score) or not 0 <= trust_score <= 100:
        raise ClassifierError(f"AI service returned out-of-range trust_score {trust_score}")

    explanation = payload.get("explanation")
    if explanation is None:
        explanation = {}
    elif not isinstance(explanation, dict):
        raise ClassifierError("AI service returned a malformed explanation")

    return ClassifierResult(trust_score=float(trust_score), explanation=explanation)


class ImageClassifier:
    """Client for POST {base_url}/analyze?issue_type=... with raw image bytes."""

    def __init__(self, base_url: Optional[str], timeout_seconds: float = AI_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout_seconds = timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    async def classify(self, image_content: bytes, issue_type: str) -> ClassifierResult:
        if not self.is_configured:
            raise ClassifierError("AI service is not configured")

        url = f"{self.base_url}/analyze"
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    url,
                    params={"issue_type": issue_type},
                    data=image_content,
                    headers={"Content-Type": "application/octet-stream"},
                ) as resp:
                    if resp.status < 200 or resp.status >= 300:
                        body = await resp.text()
                        logger.warning(f"AI service returned {resp.status}: {body[:200]}")
                        raise ClassifierError(f"AI service returned {resp.status}")
                    try:
                        payload = await resp.json(content_type=None)
                    except ValueError:
                        raise ClassifierError("AI service returned invalid JSON")
        except asyncio.TimeoutError:
            logger.warning(f"⏰ AI service timed out after {self.timeout_seconds}s")
            raise ClassifierError("AI service timed out")
        except aiohttp.ClientError as e:
            logger.warning(f"AI service request failed: {e}")
            raise ClassifierError("AI service unreachable")

        return parse_classifier_payload(payload)


_classifier: Optional[ImageClassifier] = None


def get_image_classifier() -> ImageClassifier:
    """FastAPI dependency returning the process-wide classifier client."""
    global _classifier
    if _classifier is None:
        _classifier = ImageClassifier(get_ai_service_url())
        if _classifier.is_configured:
            logger.info(f"🤖 AI classifier configured at {_classifier.base_url}")
        else:
            logger.warning("⚠️ AI_SERVICE_URL not set - new reports will be marked UNAVAILABLE")
    return _classifier
