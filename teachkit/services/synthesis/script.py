"""
Narration script preparation for text-to-speech.
"""
import logging
import re

logger = logging.getLogger(__name__)

CLOSING_LINE = "Thank you for listening!"

_HEADERS = re.compile(r"#{1,6}\s*")
_BOLD_ITALIC = re.compile(r"\*{1,2}([^*]+)\*{1,2}")
_UNDERLINE = re.compile(r"_{1,2}([^_]+)_{1,2}")
_MANY_NEWLINES = re.compile(r"\n{3,}")
_MANY_SPACES = re.compile(r"[ \t]{2,}")
_SENTENCE_END = re.compile(r"[.!?]\s+")


def clean_script(script: str) -> str:
    """Strip markdown and normalise whitespace."""
    text = _HEADERS.sub("", script)
    text = _BOLD_ITALIC.sub(r"\1", text)
    text = _UNDERLINE.sub(r"\1", text)
    text = _MANY_NEWLINES.sub("\n\n", text)
    text = _MANY_SPACES.sub(" ", text)
    return text.strip()


def prepare_narration(script: str, max_chars: int) -> str:
    """
    Clean a narration script and cap it at ``max_chars``.

    Over-long scripts are cut at the last sentence boundary inside the limit and
    finished with a closing line; without any boundary they are cut at a word.
    Raises ValueError for an empty script.
    """
    if not script or not script.strip():
        raise ValueError("Cannot generate audio: script is empty")
    text = clean_script(script)
    if not text:
        raise ValueError("Cannot generate audio: script is empty after cleaning")
    if len(text) <= max_chars:
        return text

    logger.warning("narration_truncated", extra={"count": len(text)})
    head = text[:max_chars]
    ends = list(_SENTENCE_END.finditer(head))
    if ends:
        last = ends[-1]
        return f"{text[:last.end()].strip()}\n\n{CLOSING_LINE}"
    words = head.split()
    return " ".join(words[:-1]).strip() + "..."
