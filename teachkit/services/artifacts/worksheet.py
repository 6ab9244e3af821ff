"""
Student worksheet (.docx) built with python-docx.
"""
from io import BytesIO
from string import ascii_uppercase

from docx import Document
from docx.shared import Pt

from teachkit.services.synthesis.base import Question

ANSWER_LINE = "Answer: " + "_" * 50
ESSAY_LINES = 8


def build_worksheet(topic: str, questions: list[Question]) -> bytes:
    if not questions:
        raise ValueError("Worksheet needs at least one question")

    doc = Document()
    doc.add_heading(f"Worksheet: {topic}", level=0)
    doc.add_paragraph("Name: ___________________ Date: ___________")

    for index, q in enumerate(questions, start=1):
        heading = doc.add_paragraph()
        run = heading.add_run(f"{index}. {q.question}")
        run.bold = True
        run.font.size = Pt(13)

        if q.type == "multiple-choice":
            for letter, option in zip(ascii_uppercase, q.options):
                doc.add_paragraph(f"{letter}. {option}").paragraph_format.left_indent = Pt(18)
        elif q.type == "essay":
            doc.add_paragraph("Answer:")
            for _ in range(ESSAY_LINES):
                doc.add_paragraph("_" * 80)
        else:
            doc.add_paragraph(ANSWER_LINE)

    buf = BytesIO()
    doc.save(buf)
    return buf.getvalue()
