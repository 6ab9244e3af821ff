"""
Factory for creating content synthesis providers based on configuration.
"""
import logging
from typing import Any

from teachkit.services.synthesis.base import Capability, ContentSynthesisProvider
from teachkit.services.synthesis.providers.gemini import GeminiProvider
from teachkit.services.synthesis.providers.openai import OpenAIProvider

logger = logging.getLogger(__name__)

CAPABILITY_SETTINGS = {
    Capability.LESSON: "lesson_provider",
    Capability.AUDIO: "audio_provider",
    Capability.IMAGE: "image_provider",
}


class SynthesisProviderFactory:
    """Factory for creating synthesis providers."""

    PROVIDERS: dict[str, type[ContentSynthesisProvider]] = {
        "openai": OpenAIProvider,
        "gemini": GeminiProvider,
    }

    @classmethod
    def create(cls, provider_name: str, config: dict) -> ContentSynthesisProvider:
        """
        Create provider instance by name.

        Raises:
            ValueError: If provider name is unknown
        """
        provider_class = cls.PROVIDERS.get(provider_name.lower())
        if not provider_class:
            available = ", ".join(cls.PROVIDERS.keys())
            raise ValueError(
                f"Unknown provider: {provider_name}. "
                f"Available providers: {available}"
            )

        logger.info("synthesis_provider_created", extra={"provider": provider_name})
        provider = provider_class(config)
        if not provider.is_available():
            logger.warning("synthesis_provider_not_configured", extra={"provider": provider_name})
        return provider

    @classmethod
    def config_for(cls, provider_name: str, settings: Any) -> dict:
        if provider_name == "openai":
            return {
                "api_key": settings.openai_api_key,
                "timeout": settings.openai_request_timeout,
                "lesson_model": settings.openai_lesson_model,
                "tts_model": settings.openai_tts_model,
                "tts_voice": settings.openai_tts_voice,
                "tts_speed": settings.openai_tts_speed,
                "image_model": settings.openai_image_model,
                "image_size": settings.image_size,
                "script_limit": settings.narration_max_chars,
            }
        if provider_name == "gemini":
            return {
                "api_key": settings.gemini_api_key,
                "api_endpoint": settings.gemini_api_endpoint,
                "timeout": settings.gemini_timeout,
                "lesson_model": settings.gemini_lesson_model,
                "image_model": settings.gemini_image_model,
                "image_size": settings.image_size,
                "script_limit": settings.narration_max_chars,
            }
        raise ValueError(f"Provider {provider_name} not supported in settings")

    @classmethod
    def create_for(cls, capability: Capability, settings: Any) -> ContentSynthesisProvider:
        """
        Create the provider configured for one capability.

        Raises:
            ValueError: If the configured backend is unknown or lacks the capability
        """
        provider_name = (getattr(settings, CAPABILITY_SETTINGS[capability]) or "").strip().lower()
        provider = cls.create(provider_name, cls.config_for(provider_name, settings))
        if not provider.supports(capability):
            raise ValueError(
                f"Provider {provider_name} does not support {capability.value} synthesis"
            )
        return provider

    @classmethod
    def get_available_providers(cls) -> list[str]:
        return list(cls.PROVIDERS.keys())
