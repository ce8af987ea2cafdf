"""Tests for the asset-pipeline command line."""

import io
import tempfile
import unittest
import zipfile
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from markdown_asset_pipeline import cli


class TestCli(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.docs = self.root / "docs"
        self.docs.mkdir()
        (self.docs / "intro.md").write_text("---\nid: 5\ntitle: Intro\n---\nNo images here.", encoding='utf-8')

    def tearDown(self):
        self.temp_dir.cleanup()

    def _run(self, argv):
        with redirect_stdout(io.StringIO()) as output:
            code = cli.main(argv)
        return code, output.getvalue()

    def test_export_writes_archive(self):
        archive_path = self.root / "out" / "bundle.zip"

        code, output = self._run(['export', str(self.docs), '-o', str(archive_path), '--no-progress'])

        self.assertEqual(code, 0)
        self.assertIn("EXPORT SUMMARY", output)
        with zipfile.ZipFile(archive_path) as archive:
            self.assertEqual(archive.namelist(), ["5-Intro.md"])

    def test_normalize_dry_run(self):
        code, output = self._run(['normalize', str(self.docs), '--dry-run', '--no-progress'])

        self.assertEqual(code, 0)
        self.assertIn("DRY RUN", output)

    def test_missing_config_file_fails(self):
        code, _ = self._run(['export', str(self.docs), '--config', str(self.root / "none.yaml")])
        self.assertEqual(code, 1)

    def test_invalid_config_fails(self):
        config_path = self.root / "config.yaml"
        config_path.write_text("fetcher:\n  timeout: -1\n", encoding='utf-8')

        code, _ = self._run(['normalize', str(self.docs), '--config', str(config_path)])

        self.assertEqual(code, 1)

    def test_interrupt_exit_code(self):
        with patch.object(cli, 'run_export', side_effect=KeyboardInterrupt):
            code, _ = self._run(['export', str(self.docs), '-o', str(self.root / "b.zip")])
        self.assertEqual(code, 130)


if __name__ == '__main__':
    unittest.main()
