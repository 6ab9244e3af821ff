"""
Prompt templates for lesson and image synthesis.
"""
from teachkit.services.synthesis.base import Slide

LESSON_SYSTEM_PROMPT = (
    "You are an expert educator and an engaging podcast host. You create clear, "
    "well-structured teaching materials. Return ONLY valid JSON in this exact format: "
    '{"slides": [{"title": "...", "content": ["...", "..."]}], '
    '"podcastScript": "...", '
    '"questions": [{"question": "...", "type": "multiple-choice"|"short-answer"|"essay", '
    '"options": ["..."], "correctAnswer": "..."}]}'
)

LESSON_USER_TEMPLATE = """Create a complete lesson about "{topic}".

Slides: 6-8 slides with clear, descriptive titles and 3-5 bullet points each
(1-2 sentences per bullet). Logical flow: introduction, main concepts, examples, summary.

podcastScript: a conversational narration of the lesson, written for the ear, in full
paragraphs, with a hook, the key points, real-world examples and a conclusion.
It MUST be under {script_limit} characters.

questions: 8-10 assessment questions based on the slides: 4-5 multiple-choice
(4 options each), 2-3 short-answer and 2 essay questions, each with a detailed correct answer."""

NO_TEXT_CLAUSE = (
    "CRITICAL: This image must contain NO text, NO words, NO letters, NO numbers, "
    "NO labels, NO captions, NO signs, and NO written content of any kind. "
    "Pure visual illustration only."
)


def lesson_messages(topic: str, script_limit: int) -> list[dict[str, str]]:
    # Leave headroom below the TTS cap; the narration is truncated anyway if the model overshoots
    return [
        {"role": "system", "content": LESSON_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": LESSON_USER_TEMPLATE.format(topic=topic, script_limit=max(script_limit - 200, 500)),
        },
    ]


def image_prompts(topic: str, slides: list[Slide], count: int = 3) -> list[str]:
    """Deterministic illustration prompts for a lesson, at most ``count``."""
    main_concept = slides[0].title if slides else topic
    key_concepts = ", ".join([point for s in slides for point in s.content][:5]) or topic
    prompts = [
        f"Professional educational illustration about {topic}, specifically showing "
        f"{main_concept}, clear and informative, suitable for teaching materials, "
        f"high quality, visually engaging, educational style.",
        f"Educational diagram or visual representation of key concepts in {topic}, "
        f"showing {key_concepts}, professional style, suitable for presentations, "
        f"clear and informative.",
        f"Visual example or practical application illustration related to {topic}, "
        f"showing real-world context, educational and engaging, professional quality.",
    ]
    return [f"{p} {NO_TEXT_CLAUSE}" for p in prompts[: max(count, 0)]]
