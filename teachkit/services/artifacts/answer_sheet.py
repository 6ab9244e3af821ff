"""
Teacher answer key (.pdf) built with reportlab.
"""
from io import BytesIO
from string import ascii_uppercase
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from teachkit.services.synthesis.base import Question


def _answer_text(q: Question) -> str:
    if q.type == "multiple-choice" and q.correct_answer in q.options:
        letter = ascii_uppercase[q.options.index(q.correct_answer)]
        return f"{letter}. {q.correct_answer}"
    return q.correct_answer or "(no answer provided)"


def build_answer_sheet(topic: str, questions: list[Question]) -> bytes:
    if not questions:
        raise ValueError("Answer sheet needs at least one question")

    styles = getSampleStyleSheet()
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=LETTER,
        leftMargin=0.7 * inch,
        rightMargin=0.7 * inch,
        title=f"Answer Sheet: {topic}",
    )
    story = [Paragraph(escape(f"Answer Sheet: {topic}"), styles["Title"]), Spacer(1, 0.2 * inch)]
    for index, q in enumerate(questions, start=1):
        story.append(Paragraph(f"<b>{index}. {escape(q.question)}</b>", styles["Normal"]))
        story.append(Spacer(1, 0.05 * inch))
        story.append(Paragraph(f"Answer: {escape(_answer_text(q))}", styles["BodyText"]))
        story.append(Spacer(1, 0.2 * inch))
    doc.build(story)
    return buf.getvalue()
