"""
Base classes and types for content synthesis providers.
Used by factory and all providers (openai, gemini).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

QUESTION_TYPES = ("multiple-choice", "short-answer", "essay")


class Capability(str, Enum):
    LESSON = "lesson"
    AUDIO = "audio"
    IMAGE = "image"


class SynthesisError(Exception):
    """Raised when a provider call fails; detail holds fields the runner classifies and logs."""
    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


def malformed(message: str) -> SynthesisError:
    return SynthesisError(message, detail={"malformed": True})


@dataclass
class Slide:
    title: str
    content: list[str]


@dataclass
class Question:
    question: str
    type: str
    correct_answer: str
    options: list[str] = field(default_factory=list)


@dataclass
class LessonContent:
    """Structured lesson: slides, narration script and worksheet questions."""
    slides: list[Slide]
    script: str
    questions: list[Question]

    @classmethod
    def from_dict(cls, data: Any) -> "LessonContent":
        """
        Build from the provider's JSON shape:
        {"slides": [{"title", "content": [...]}], "podcastScript": "...",
         "questions": [{"question", "type", "options", "correctAnswer"}]}
        Raises SynthesisError (malformed) when the shape is unusable.
        """
        if not isinstance(data, dict):
            raise malformed("Lesson payload is not an object")

        slides = []
        for raw in data.get("slides") or []:
            if not isinstance(raw, dict):
                continue
            title = str(raw.get("title") or "").strip()
            bullets = [str(b).strip() for b in raw.get("content") or [] if str(b).strip()]
            if title and bullets:
                slides.append(Slide(title=title, content=bullets))
        if not slides:
            raise malformed("Lesson has no usable slides")

        script = str(data.get("podcastScript") or data.get("script") or "").strip()
        if not script:
            raise malformed("Lesson has no narration script")

        worksheet = data.get("worksheet")
        raw_questions = data.get("questions")
        if raw_questions is None and isinstance(worksheet, dict):
            raw_questions = worksheet.get("questions")
        questions = []
        for raw in raw_questions or []:
            if not isinstance(raw, dict):
                continue
            text = str(raw.get("question") or "").strip()
            qtype = str(raw.get("type") or "short-answer").strip().lower()
            answer = str(raw.get("correctAnswer") or raw.get("correct_answer") or "").strip()
            options = [str(o).strip() for o in raw.get("options") or [] if str(o).strip()]
            if not text or qtype not in QUESTION_TYPES:
                continue
            if qtype == "multiple-choice" and len(options) < 2:
                qtype = "short-answer"
                options = []
            if qtype != "multiple-choice":
                options = []
            questions.append(Question(question=text, type=qtype, correct_answer=answer, options=options))
        if not questions:
            raise malformed("Lesson has no usable questions")

        return cls(slides=slides, script=script, questions=questions)


def build_gemini_error_detail(result: dict[str, Any]) -> dict[str, Any]:
    """
    Extract error-related fields from a raw Gemini response for logging and classification.
    Normalized keys: prompt_feedback, block_reason, finish_reason, finish_message.
    """
    detail: dict[str, Any] = {}
    if not result:
        return detail
    prompt_feedback = result.get("promptFeedback") or {}
    if prompt_feedback:
        detail["prompt_feedback"] = prompt_feedback
        if prompt_feedback.get("blockReason"):
            detail["block_reason"] = prompt_feedback.get("blockReason")
    candidates = result.get("candidates") or []
    if candidates:
        c0 = candidates[0]
        if "finishReason" in c0:
            detail["finish_reason"] = c0["finishReason"]
        if "finishMessage" in c0:
            detail["finish_message"] = c0["finishMessage"]
    return detail


class ContentSynthesisProvider(ABC):
    """
    One backend offering some subset of the synthesis capabilities.
    Calls for a capability the backend does not declare raise SynthesisError.
    """

    name = "base"

    def __init__(self, config: dict) -> None:
        self.config = config

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured and available."""
        pass

    @abstractmethod
    def capabilities(self) -> frozenset[Capability]:
        pass

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities()

    def generate_lesson(self, topic: str) -> LessonContent:
        raise SynthesisError(f"{self.name} does not generate lessons", detail={"unsupported": True})

    def synthesize_audio(self, script: str) -> bytes:
        raise SynthesisError(f"{self.name} does not synthesize audio", detail={"unsupported": True})

    def generate_image(self, prompt: str) -> bytes:
        raise SynthesisError(f"{self.name} does not generate images", detail={"unsupported": True})
