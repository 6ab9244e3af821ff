"""
Unit tests for the lesson payload parser and the prompt templates.
"""
import unittest

from teachkit.services.synthesis.base import LessonContent, Slide, SynthesisError
from teachkit.services.synthesis.prompts import NO_TEXT_CLAUSE, image_prompts, lesson_messages


def _payload(**overrides):
    data = {
        "slides": [
            {"title": "Light reactions", "content": ["Chlorophyll absorbs light.", "Water is split."]},
            {"title": "Calvin cycle", "content": ["CO2 is fixed."]},
        ],
        "podcastScript": "Welcome to the lesson.",
        "questions": [
            {
                "question": "What absorbs light?",
                "type": "multiple-choice",
                "options": ["Chlorophyll", "Starch", "Oxygen", "Glucose"],
                "correctAnswer": "Chlorophyll",
            },
            {"question": "Where does the Calvin cycle happen?", "type": "short-answer", "correctAnswer": "Stroma"},
        ],
    }
    data.update(overrides)
    return data


class TestLessonContentFromDict(unittest.TestCase):
    def test_parses_full_payload(self):
        lesson = LessonContent.from_dict(_payload())
        self.assertEqual([s.title for s in lesson.slides], ["Light reactions", "Calvin cycle"])
        self.assertEqual(lesson.script, "Welcome to the lesson.")
        self.assertEqual(lesson.questions[0].options[0], "Chlorophyll")
        self.assertEqual(lesson.questions[1].correct_answer, "Stroma")
        self.assertEqual(lesson.questions[1].options, [])

    def test_accepts_nested_worksheet_and_snake_case(self):
        data = _payload(script="Narration.")
        del data["podcastScript"]
        questions = data.pop("questions")
        questions[1] = {"question": "Define it.", "type": "essay", "correct_answer": "Because."}
        data["worksheet"] = {"questions": questions}
        lesson = LessonContent.from_dict(data)
        self.assertEqual(lesson.script, "Narration.")
        self.assertEqual(lesson.questions[1].type, "essay")
        self.assertEqual(lesson.questions[1].correct_answer, "Because.")

    def test_multiple_choice_without_options_becomes_short_answer(self):
        data = _payload(questions=[{"question": "Name it.", "type": "multiple-choice", "options": ["Only"]}])
        question = LessonContent.from_dict(data).questions[0]
        self.assertEqual(question.type, "short-answer")
        self.assertEqual(question.options, [])

    def test_skips_unusable_entries(self):
        data = _payload()
        data["slides"].append({"title": "", "content": ["orphan"]})
        data["slides"].append("not a slide")
        data["questions"].append({"question": "Odd", "type": "true-false"})
        lesson = LessonContent.from_dict(data)
        self.assertEqual(len(lesson.slides), 2)
        self.assertEqual(len(lesson.questions), 2)

    def test_rejects_unusable_payloads(self):
        for bad in (
            [],
            _payload(slides=[]),
            _payload(podcastScript="  "),
            _payload(questions=[]),
        ):
            with self.subTest(bad=bad):
                with self.assertRaises(SynthesisError) as ctx:
                    LessonContent.from_dict(bad)
                self.assertTrue(ctx.exception.detail["malformed"])


class TestPrompts(unittest.TestCase):
    def test_lesson_messages_leave_headroom(self):
        messages = lesson_messages("Photosynthesis", 4000)
        self.assertEqual([m["role"] for m in messages], ["system", "user"])
        self.assertIn('"Photosynthesis"', messages[1]["content"])
        self.assertIn("under 3800 characters", messages[1]["content"])
        self.assertIn("under 500 characters", lesson_messages("x", 100)[1]["content"])

    def test_image_prompts_forbid_text(self):
        slides = [Slide(title="Light reactions", content=["Chlorophyll absorbs light."])]
        prompts = image_prompts("Photosynthesis", slides)
        self.assertEqual(len(prompts), 3)
        self.assertIn("Light reactions", prompts[0])
        self.assertIn("Chlorophyll absorbs light.", prompts[1])
        for prompt in prompts:
            self.assertIn("Photosynthesis", prompt)
            self.assertTrue(prompt.endswith(NO_TEXT_CLAUSE))

    def test_image_prompt_count(self):
        self.assertEqual(len(image_prompts("Topic", [], count=1)), 1)
        self.assertEqual(image_prompts("Topic", [], count=0), [])
