"""
Gemini provider (Google AI generateContent).
Uses generativelanguage.googleapis.com with api_key; lesson JSON via responseMimeType,
illustrations via the IMAGE response modality.
A 200 OK with empty or blocked content is never treated as success.
"""
import base64
import json
import logging
from typing import Any

import httpx

from teachkit.services.synthesis.base import (
    Capability,
    ContentSynthesisProvider,
    LessonContent,
    SynthesisError,
    build_gemini_error_detail,
    malformed,
)
from teachkit.services.synthesis.prompts import lesson_messages

logger = logging.getLogger(__name__)

LESSON_TEMPERATURE = 0.8
IMAGE_TEMPERATURE = 0.4


def _size_to_aspect_ratio(size: str | None) -> str:
    """Convert size like '1024x1024' to aspect ratio like '1:1'."""
    if not size or "x" not in size:
        return "1:1"
    try:
        w, h = size.split("x")
        width, height = int(w), int(h)
    except (ValueError, TypeError):
        return "1:1"
    if width == height:
        return "1:1"
    if width * 9 == height * 16:
        return "16:9"
    if width * 16 == height * 9:
        return "9:16"
    if width * 3 == height * 4:
        return "4:3"
    if width * 4 == height * 3:
        return "3:4"
    return "1:1"


class GeminiProvider(ContentSynthesisProvider):
    """Gemini lesson and image provider."""

    name = "gemini"

    def __init__(self, config: dict) -> None:
        super().__init__(config)
        self.api_key = (config.get("api_key") or "").strip()
        endpoint = (config.get("api_endpoint") or "https://generativelanguage.googleapis.com").rstrip("/")
        self.base_url = f"{endpoint}/v1beta/models"
        self.timeout = float(config.get("timeout", 180.0))
        self.lesson_model = (config.get("lesson_model") or "gemini-2.5-flash").strip()
        self.image_model = (config.get("image_model") or "gemini-2.5-flash-image").strip()
        self.image_size = config.get("image_size", "1024x1024")
        self.script_limit = config.get("script_limit", 4000)

    def is_available(self) -> bool:
        return bool(self.api_key)

    def capabilities(self) -> frozenset[Capability]:
        return frozenset({Capability.LESSON, Capability.IMAGE})

    def _generate_content(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.is_available():
            raise SynthesisError("Gemini provider not configured (missing api_key)", detail={"not_configured": True})
        url = f"{self.base_url}/{model}:generateContent"
        params = {"key": self.api_key}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(url, params=params, json=payload)
                resp.raise_for_status()
                result = resp.json()
        except httpx.HTTPStatusError as e:
            try:
                err_body = e.response.json()
            except ValueError:
                err_body = {}
            detail = build_gemini_error_detail(err_body)
            detail["http_status"] = e.response.status_code
            if e.response.status_code == 429:
                retry_after = e.response.headers.get("Retry-After")
                if retry_after is not None:
                    detail["retry_after"] = retry_after
            msg = (err_body.get("error") or {}).get("message", str(e))
            raise SynthesisError(msg, detail=detail) from e
        except httpx.HTTPError as e:
            raise SynthesisError(str(e), detail={}) from e
        except ValueError as e:
            raise malformed(f"Gemini response is not JSON: {e}") from e

        prompt_feedback = result.get("promptFeedback") or {}
        if prompt_feedback.get("blockReason"):
            raise SynthesisError(prompt_feedback["blockReason"], detail=build_gemini_error_detail(result))

        candidates = result.get("candidates") or []
        if not candidates:
            raise SynthesisError("No candidates in Gemini response", detail=build_gemini_error_detail(result))

        c0 = candidates[0]
        finish_reason = c0.get("finishReason", "")
        if finish_reason and finish_reason != "STOP":
            raise SynthesisError(
                c0.get("finishMessage") or finish_reason,
                detail=build_gemini_error_detail(result),
            )
        return c0

    def generate_lesson(self, topic: str) -> LessonContent:
        messages = lesson_messages(topic, self.script_limit)
        system = next(m["content"] for m in messages if m["role"] == "system")
        user = next(m["content"] for m in messages if m["role"] == "user")
        payload = {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": user}]}],
            "generationConfig": {
                "temperature": LESSON_TEMPERATURE,
                "responseMimeType": "application/json",
            },
        }
        candidate = self._generate_content(self.lesson_model, payload)
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text.strip():
            raise malformed("Empty lesson response from Gemini")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise malformed(f"Lesson response is not valid JSON: {e}") from e
        return LessonContent.from_dict(data)

    def generate_image(self, prompt: str) -> bytes:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "temperature": IMAGE_TEMPERATURE,
                "imageConfig": {"aspectRatio": _size_to_aspect_ratio(self.image_size)},
            },
        }
        candidate = self._generate_content(self.image_model, payload)
        for part in (candidate.get("content") or {}).get("parts") or []:
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and isinstance(inline.get("data"), str):
                try:
                    return base64.standard_b64decode(inline["data"])
                except ValueError as e:
                    raise malformed(f"Gemini image is not valid base64: {e}") from e
        raise malformed("No image in Gemini response")
