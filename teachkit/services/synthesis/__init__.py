"""
Content synthesis service with per-capability provider selection.
"""
from .base import (
    Capability,
    ContentSynthesisProvider,
    LessonContent,
    Question,
    Slide,
    SynthesisError,
)
from .factory import SynthesisProviderFactory
from .failure_types import FailureType, classify_failure
from .prompts import image_prompts
from .runner import run_with_retry
from .script import prepare_narration

__all__ = [
    "Capability",
    "ContentSynthesisProvider",
    "LessonContent",
    "Question",
    "Slide",
    "SynthesisError",
    "SynthesisProviderFactory",
    "FailureType",
    "classify_failure",
    "image_prompts",
    "run_with_retry",
    "prepare_narration",
]
