"""
OpenAI provider: lesson JSON via chat completions, narration via TTS, illustrations via the images API.
"""
import base64
import json
import logging
from typing import Any, Callable, TypeVar

import httpx
import openai
from openai import OpenAI

from teachkit.services.synthesis.base import (
    Capability,
    ContentSynthesisProvider,
    LessonContent,
    SynthesisError,
    malformed,
)
from teachkit.services.synthesis.prompts import lesson_messages

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _error_detail(e: openai.OpenAIError) -> dict[str, Any]:
    if isinstance(e, openai.APIStatusError):
        detail: dict[str, Any] = {"http_status": e.status_code}
        retry_after = e.response.headers.get("Retry-After") if e.response is not None else None
        if retry_after is not None:
            detail["retry_after"] = retry_after
        return detail
    # Connection errors and timeouts carry no detail and classify as transient
    return {}


class OpenAIProvider(ContentSynthesisProvider):
    """OpenAI lesson, TTS and image provider."""

    name = "openai"

    def __init__(self, config: dict):
        super().__init__(config)
        self.api_key = config.get("api_key")
        self.timeout = config.get("timeout", 120.0)
        self.lesson_model = config.get("lesson_model", "gpt-4o")
        self.tts_model = config.get("tts_model", "tts-1-hd")
        self.tts_voice = config.get("tts_voice", "nova")
        self.tts_speed = config.get("tts_speed", 0.95)
        self.image_model = config.get("image_model", "dall-e-3")
        self.image_size = config.get("image_size", "1024x1024")
        self.script_limit = config.get("script_limit", 4000)

        if self.api_key:
            # Retries are owned by the synthesis runner
            self.client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        else:
            self.client = None

    def is_available(self) -> bool:
        return bool(self.api_key and self.client)

    def capabilities(self) -> frozenset[Capability]:
        return frozenset({Capability.LESSON, Capability.AUDIO, Capability.IMAGE})

    def _call(self, fn: Callable[[], T]) -> T:
        if not self.is_available():
            raise SynthesisError("OpenAI provider not configured", detail={"not_configured": True})
        try:
            return fn()
        except openai.OpenAIError as e:
            raise SynthesisError(str(e), detail=_error_detail(e)) from e

    def generate_lesson(self, topic: str) -> LessonContent:
        response = self._call(lambda: self.client.chat.completions.create(
            model=self.lesson_model,
            messages=lesson_messages(topic, self.script_limit),
            temperature=0.8,
            max_tokens=6000,
            response_format={"type": "json_object"},
        ))
        choice = response.choices[0] if response.choices else None
        text = choice.message.content if choice is not None else None
        if not text:
            raise malformed("Empty lesson response from OpenAI")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise malformed(f"Lesson response is not valid JSON: {e}") from e
        return LessonContent.from_dict(data)

    def synthesize_audio(self, script: str) -> bytes:
        response = self._call(lambda: self.client.audio.speech.create(
            model=self.tts_model,
            voice=self.tts_voice,
            input=script,
            speed=self.tts_speed,
            response_format="mp3",
        ))
        content = response.content
        if not content:
            raise malformed("Empty audio response from OpenAI")
        return content

    def generate_image(self, prompt: str) -> bytes:
        response = self._call(lambda: self.client.images.generate(
            model=self.image_model,
            prompt=prompt,
            size=self.image_size,
            n=1,
        ))
        if not response.data:
            raise malformed("No image in OpenAI response")
        item = response.data[0]
        if getattr(item, "b64_json", None):
            try:
                return base64.b64decode(item.b64_json)
            except ValueError as e:
                raise malformed(f"OpenAI image is not valid base64: {e}") from e
        if not item.url:
            raise malformed("No image in OpenAI response")

        try:
            with httpx.Client(timeout=self.timeout) as http_client:
                img_response = http_client.get(item.url)
                img_response.raise_for_status()
                return img_response.content
        except httpx.HTTPStatusError as e:
            raise SynthesisError(
                f"Image download failed: {e}", detail={"http_status": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            raise SynthesisError(f"Image download failed: {e}") from e
