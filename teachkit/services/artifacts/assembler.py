"""
Turns structured lesson content into the deterministic document artifacts.
"""
from dataclasses import dataclass

from teachkit.services.artifacts.answer_sheet import build_answer_sheet
from teachkit.services.artifacts.presentation import build_presentation
from teachkit.services.artifacts.worksheet import build_worksheet
from teachkit.services.synthesis.base import LessonContent


@dataclass
class AssembledArtifacts:
    presentation: bytes
    worksheet: bytes
    answer_sheet: bytes


class ArtifactAssembler:
    """Pure transformation; raises ValueError on malformed content."""

    def assemble(self, topic: str, lesson: LessonContent) -> AssembledArtifacts:
        return AssembledArtifacts(
            presentation=build_presentation(topic, lesson.slides),
            worksheet=build_worksheet(topic, lesson.questions),
            answer_sheet=build_answer_sheet(topic, lesson.questions),
        )
