"""
Unit tests for the filesystem artifact store.
"""
import os
import tempfile
import unittest

from teachkit.storage.base import validate_filename
from teachkit.storage.local import LocalStorage


class TestLocalStorage(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = os.path.join(self.tmp.name, "generations")
        self.storage = LocalStorage(self.root)

    def tearDown(self):
        self.tmp.cleanup()

    def test_save_and_read(self):
        path = self.storage.save("topic_1.pptx", b"PK")
        self.assertEqual(path, os.path.join(self.root, "topic_1.pptx"))
        self.assertTrue(self.storage.exists("topic_1.pptx"))
        self.assertEqual(self.storage.read("topic_1.pptx"), b"PK")
        self.assertFalse(os.path.exists(path + ".part"))

    def test_overwrite(self):
        self.storage.save("topic_1.mp3", b"one")
        self.storage.save("topic_1.mp3", b"two")
        self.assertEqual(self.storage.read("topic_1.mp3"), b"two")

    def test_missing(self):
        self.assertFalse(self.storage.exists("nope.pdf"))
        with self.assertRaises(FileNotFoundError):
            self.storage.read("nope.pdf")

    def test_rejects_paths(self):
        for name in ("../x.pdf", "sub/x.pdf", "x\\y.pdf", "a\x00.pdf", ""):
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    self.storage.save(name, b"x")
                with self.assertRaises(ValueError):
                    validate_filename(name)
