"""Tests for reading a directory of markdown files as documents."""

import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from markdown_asset_pipeline.exporters import FileDocumentStore


class TestFileDocumentStore(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_front_matter_is_parsed(self):
        (self.root / "post.md").write_text(
            "---\n"
            "id: 42\n"
            "title: Hello\n"
            "author: Ann\n"
            "tags: [a, b]\n"
            "created_at: 2024-01-02 03:04:05\n"
            "status: 1\n"
            "---\n"
            "Body ![x](https://example.com/x.png)\n",
            encoding='utf-8'
        )

        documents = FileDocumentStore(self.root).list_documents()

        self.assertEqual(len(documents), 1)
        document = documents[0]
        self.assertEqual(document.id, 42)
        self.assertEqual(document.title, "Hello")
        self.assertEqual(document.author, "Ann")
        self.assertEqual(document.tags, ["a", "b"])
        self.assertEqual(document.created_at, datetime(2024, 1, 2, 3, 4, 5))
        self.assertEqual(document.status, 1)
        self.assertEqual(document.body, "Body ![x](https://example.com/x.png)\n")

    def test_plain_files_use_defaults(self):
        (self.root / "b.md").write_text("second", encoding='utf-8')
        (self.root / "a.md").write_text("first", encoding='utf-8')
        (self.root / "notes.txt").write_text("ignored", encoding='utf-8')

        documents = FileDocumentStore(self.root).list_documents()

        self.assertEqual([d.title for d in documents], ["a", "b"])
        self.assertEqual([d.id for d in documents], [1, 2])
        self.assertEqual(documents[0].body, "first")
        self.assertIsNotNone(documents[0].created_at)

    def test_update_body_keeps_front_matter(self):
        path = self.root / "post.md"
        path.write_text("---\ntitle: Keep\n---\nold body", encoding='utf-8')
        store = FileDocumentStore(self.root)
        document = store.list_documents()[0]

        store.update_body(document.id, "new body")

        self.assertEqual(path.read_text(encoding='utf-8'), "---\ntitle: Keep\n---\nnew body")
        self.assertEqual(store.stats['files_updated'], 1)

    def test_invalid_front_matter_is_treated_as_body(self):
        content = "---\ntitle: [unclosed\n---\nbody"
        (self.root / "bad.md").write_text(content, encoding='utf-8')

        document = FileDocumentStore(self.root).list_documents()[0]

        self.assertEqual(document.body, content)
        self.assertEqual(document.title, "bad")

    def test_duplicate_ids_never_share_a_file(self):
        (self.root / "a.md").write_text("---\nid: 2\n---\nbody A\n", encoding='utf-8')
        (self.root / "b.md").write_text("body B\n", encoding='utf-8')
        (self.root / "c.md").write_text("---\nid: 2\n---\nbody C\n", encoding='utf-8')
        store = FileDocumentStore(self.root)

        documents = store.list_documents()
        ids = [document.id for document in documents]
        self.assertEqual(len(set(ids)), 3)
        self.assertEqual(ids[0], 2)

        for document in documents:
            store.update_body(document.id, f"new {document.body}")

        self.assertEqual((self.root / "a.md").read_text(encoding='utf-8'), "---\nid: 2\n---\nnew body A\n")
        self.assertEqual((self.root / "b.md").read_text(encoding='utf-8'), "new body B\n")
        self.assertEqual((self.root / "c.md").read_text(encoding='utf-8'), "---\nid: 2\n---\nnew body C\n")

    def test_reading_twice_keeps_ids_stable(self):
        (self.root / "a.md").write_text("---\nid: 7\n---\nbody", encoding='utf-8')
        store = FileDocumentStore(self.root)

        self.assertEqual([d.id for d in store.list_documents()], [7])
        self.assertEqual([d.id for d in store.list_documents()], [7])

    def test_date_only_timestamps(self):
        (self.root / "post.md").write_text(
            "---\ncreated_at: 2024-01-05\nupdated_at: 2024-02-06\n---\nbody", encoding='utf-8')

        document = FileDocumentStore(self.root).list_documents()[0]

        self.assertEqual(document.created_at, datetime(2024, 1, 5))
        self.assertEqual(document.updated_at, datetime(2024, 2, 6))

    def test_missing_directory(self):
        with self.assertRaises(ValueError):
            FileDocumentStore(self.root / "missing").list_documents()

    def test_unknown_document_cannot_be_updated(self):
        with self.assertRaises(KeyError):
            FileDocumentStore(self.root).update_body(99, "body")


if __name__ == '__main__':
    unittest.main()
