"""
Unit tests for document assembly: the artifacts open in their own libraries and carry the lesson.
"""
import unittest
from io import BytesIO

from docx import Document
from pptx import Presentation

from teachkit.services.artifacts.answer_sheet import _answer_text, build_answer_sheet
from teachkit.services.artifacts.assembler import ArtifactAssembler
from teachkit.services.artifacts.presentation import build_presentation
from teachkit.services.artifacts.worksheet import build_worksheet
from teachkit.services.synthesis.base import Question

from support import make_lesson


class TestArtifactAssembler(unittest.TestCase):
    def setUp(self):
        self.lesson = make_lesson()
        self.artifacts = ArtifactAssembler().assemble("World War II", self.lesson)

    def test_presentation_has_cover_and_one_slide_per_section(self):
        deck = Presentation(BytesIO(self.artifacts.presentation))
        titles = [slide.shapes.title.text for slide in deck.slides]
        self.assertEqual(titles, ["World War II", "Introduction to World War II", "Key Events"])
        body = deck.slides[2].placeholders[1].text_frame.text
        self.assertIn("D-Day landings", body)
        self.assertEqual(deck.core_properties.author, "TeachKit")

    def test_worksheet_lists_questions_and_options(self):
        doc = Document(BytesIO(self.artifacts.worksheet))
        text = [p.text for p in doc.paragraphs]
        self.assertIn("Worksheet: World War II", text)
        self.assertIn("1. When did the war begin?", text)
        self.assertIn("B. 1939", text)
        self.assertIn("3. Discuss the causes of the war.", text)
        # Answers never appear on the student worksheet
        self.assertNotIn("D-Day", " ".join(text))

    def test_answer_sheet_is_pdf(self):
        self.assertTrue(self.artifacts.answer_sheet.startswith(b"%PDF"))

    def test_assembly_is_deterministic_in_structure(self):
        again = ArtifactAssembler().assemble("World War II", self.lesson)
        first = [s.shapes.title.text for s in Presentation(BytesIO(self.artifacts.presentation)).slides]
        second = [s.shapes.title.text for s in Presentation(BytesIO(again.presentation)).slides]
        self.assertEqual(first, second)


class TestBuilders(unittest.TestCase):
    def test_empty_inputs_rejected(self):
        with self.assertRaises(ValueError):
            build_presentation("Topic", [])
        with self.assertRaises(ValueError):
            build_worksheet("Topic", [])
        with self.assertRaises(ValueError):
            build_answer_sheet("Topic", [])

    def test_markup_in_content_is_escaped(self):
        q = Question(question="Is 1 < 2 & 3 > 2?", type="short-answer", correct_answer="<yes>")
        self.assertTrue(build_answer_sheet("Maths <basics> & more", [q]).startswith(b"%PDF"))

    def test_answer_text(self):
        mc = Question(question="Q", type="multiple-choice", correct_answer="1939", options=["1914", "1939"])
        self.assertEqual(_answer_text(mc), "B. 1939")
        mc_off_list = Question(question="Q", type="multiple-choice", correct_answer="1940", options=["1914", "1939"])
        self.assertEqual(_answer_text(mc_off_list), "1940")
        blank = Question(question="Q", type="essay", correct_answer="")
        self.assertEqual(_answer_text(blank), "(no answer provided)")
