"""
Unit tests for narration preparation.
"""
import unittest

from teachkit.services.synthesis.script import CLOSING_LINE, clean_script, prepare_narration


class TestCleanScript(unittest.TestCase):
    def test_strips_markdown(self):
        text = "## Intro\n\nWelcome to **today's** lesson on __plants__ and *light*."
        self.assertEqual(clean_script(text), "Intro\n\nWelcome to today's lesson on plants and light.")

    def test_collapses_whitespace(self):
        self.assertEqual(clean_script("One.\n\n\n\nTwo.   Three."), "One.\n\nTwo. Three.")


class TestPrepareNarration(unittest.TestCase):
    def test_short_script_unchanged(self):
        self.assertEqual(prepare_narration("Hello class.", 100), "Hello class.")

    def test_empty_script_rejected(self):
        with self.assertRaises(ValueError):
            prepare_narration("   ", 100)
        with self.assertRaises(ValueError):
            prepare_narration("##  ", 100)

    def test_truncates_at_sentence_boundary(self):
        script = "First sentence here. Second sentence here. Third sentence is long enough to overflow."
        result = prepare_narration(script, 50)
        self.assertEqual(result, f"First sentence here. Second sentence here.\n\n{CLOSING_LINE}")

    def test_truncates_at_word_without_boundary(self):
        script = "word " * 40
        result = prepare_narration(script, 23)
        self.assertTrue(result.endswith("..."))
        self.assertNotIn(CLOSING_LINE, result)
        self.assertLessEqual(len(result), 26)
        self.assertEqual(result, "word word word word...")
