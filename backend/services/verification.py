"""Image manipulation checks and social post credibility checks.

Both return {"verified": bool, "confidence": float, "analysis": str}.
"""

import asyncio
import logging

from capabilities import Capabilities, Capability
from errors import UpstreamError
from services.adapters import AdapterResult, parse_json_reply, with_fallback
from services.ai_client import AIClient

logger = logging.getLogger(__name__)

EMERGENCY_KEYWORDS = ("emergency", "disaster", "flood", "fire")

_JSON_SHAPE = '{"verified": <true|false>, "confidence": <float 0..1>, "analysis": "<2-3 sentences>"}'

IMAGE_SYSTEM_PROMPT = (
    "You are a forensic image analyst for disaster response teams. Look for signs "
    "of manipulation (cloning, splicing, inconsistent lighting or shadows, AI "
    "generation artifacts) and whether the image plausibly shows a real disaster "
    f"scene. Reply with JSON only: {_JSON_SHAPE}"
)

POST_SYSTEM_PROMPT = (
    "You are a fact-checking assistant for disaster response teams. Judge whether a "
    "social media post is a credible first-hand or official report of an emergency. "
    f"Reply with JSON only: {_JSON_SHAPE}"
)


def mock_image_verification(image_url: str) -> dict:
    return {
        "verified": True,
        "confidence": 0.85,
        "analysis": "Image appears to be authentic with no signs of manipulation",
    }


def mock_post_verification(content: str, image_url: str | None = None) -> dict:
    """Keyword heuristic: emergency terms plus an image score highest."""
    lowered = content.lower()
    has_keywords = any(word in lowered for word in EMERGENCY_KEYWORDS)
    has_image = bool(image_url)

    confidence = (0.8 if has_image else 0.6) if has_keywords else 0.3
    analysis = (
        f"Post contains {'emergency-related keywords' if has_keywords else 'no emergency keywords'}"
        f"{' and includes an image' if has_image else ''}. Confidence score: {confidence}"
    )
    return {"verified": confidence > 0.5, "confidence": confidence, "analysis": analysis}


def _normalize_verdict(parsed: dict) -> dict:
    try:
        confidence = float(parsed.get("confidence"))
    except (TypeError, ValueError) as e:
        raise UpstreamError(f"Model verdict has no usable confidence: {parsed!r}") from e
    confidence = max(0.0, min(1.0, confidence))
    verified = parsed.get("verified")
    # Only a JSON boolean counts; "false" or 0 fall back to the confidence
    if not isinstance(verified, bool):
        verified = confidence > 0.5
    return {
        "verified": verified,
        "confidence": round(confidence, 2),
        "analysis": str(parsed.get("analysis") or "No analysis provided."),
    }


class ImageVerifier:
    def __init__(self, capabilities: Capabilities, ai: AIClient):
        self._capabilities = capabilities
        self._ai = ai

    async def verify_image(self, image_url: str) -> AdapterResult:
        return await with_fallback(
            "image verification",
            self._capabilities.is_live(Capability.IMAGE_VERIFIER),
            lambda: self._ask(
                IMAGE_SYSTEM_PROMPT,
                [
                    {"type": "text", "text": "Analyze this image for manipulation."},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            ),
            lambda: mock_image_verification(image_url),
        )

    async def verify_post(self, content: str, image_url: str | None = None) -> AdapterResult:
        user_content = f"Post: {content}"
        if image_url:
            user_content += f"\nAttached image: {image_url}"
        return await with_fallback(
            "post verification",
            self._capabilities.is_live(Capability.TEXT_AI),
            lambda: self._ask(POST_SYSTEM_PROMPT, user_content),
            lambda: mock_post_verification(content, image_url),
        )

    async def _ask(self, system_prompt: str, user_content) -> dict:
        reply = await asyncio.to_thread(
            self._ai.complete,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            max_tokens=300,
        )
        verdict = _normalize_verdict(parse_json_reply(reply))
        logger.info("Model verdict: verified=%s confidence=%.2f", verdict["verified"], verdict["confidence"])
        return verdict
