"""
Generation ids and artifact filenames.

generation_id = "{sanitized_topic}_{timestamp_ms}"; every artifact of a package
starts with it:
    {generation_id}.pptx / {generation_id}.mp3
    {generation_id}_worksheet.docx
    {generation_id}_answers.pdf
    {generation_id}_image_{n}.png   (n = 1..)
Download authorization re-derives the prefix from a filename with the same
character rule, so both directions must stay in sync.
"""
import re
import time

from teachkit.core.config import settings

_DISALLOWED = re.compile(r"[^a-z0-9_]")
_ARTIFACT_SUFFIX = re.compile(r"_(?:worksheet|answers|image_\d+)$")
EMPTY_TOPIC_PLACEHOLDER = "lesson"

PRESENTATION_EXT = "pptx"
AUDIO_EXT = "mp3"
WORKSHEET_EXT = "docx"
ANSWERS_EXT = "pdf"
IMAGE_EXT = "png"

CONTENT_TYPES = {
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "pdf": "application/pdf",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "txt": "text/plain",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}


def sanitize(value: str) -> str:
    """Lowercase and drop every character outside [a-z0-9_]."""
    return _DISALLOWED.sub("", value.lower())


def sanitize_topic(topic: str, max_length: int | None = None) -> str:
    limit = max_length if max_length is not None else settings.generation_id_topic_max_length
    return sanitize(topic.strip())[:limit] or EMPTY_TOPIC_PLACEHOLDER


def build_generation_id(topic: str, timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{sanitize_topic(topic)}_{timestamp_ms}"


def presentation_filename(generation_id: str) -> str:
    return f"{generation_id}.{PRESENTATION_EXT}"


def audio_filename(generation_id: str) -> str:
    return f"{generation_id}.{AUDIO_EXT}"


def worksheet_filename(generation_id: str) -> str:
    return f"{generation_id}_worksheet.{WORKSHEET_EXT}"


def answers_filename(generation_id: str) -> str:
    return f"{generation_id}_answers.{ANSWERS_EXT}"


def image_filename(generation_id: str, n: int) -> str:
    return f"{generation_id}_image_{n}.{IMAGE_EXT}"


def derive_generation_id(filename: str) -> str:
    """Recover the generation id prefix of an artifact filename."""
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    stem = _ARTIFACT_SUFFIX.sub("", stem)
    return sanitize(stem)


def content_type_for(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return CONTENT_TYPES.get(ext, "application/octet-stream")
