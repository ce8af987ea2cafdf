"""Tests for ingestion-time relocation of remote images."""

import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from markdown_asset_pipeline.config_loader import ConfigLoader
from markdown_asset_pipeline.fetchers import BaseFetcher
from markdown_asset_pipeline.importers import LocalStorageUploader, Normalizer, StorageUploader, StorageUploadError
from markdown_asset_pipeline.models import AssetCache, FetchResult

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 32
FIXED_NOW = datetime(2025, 11, 28, 9, 0, 0)


class FakeFetcher(BaseFetcher):
    def __init__(self, payloads):
        super().__init__()
        self.payloads = payloads
        self.calls = []

    def fetch(self, reference):
        self.calls.append(reference.original_url)
        payload = self.payloads.get(reference.original_url)
        if payload is None:
            return FetchResult(reference=reference, error="HTTP 404")
        return FetchResult(reference=reference, data=payload, content_type="image/png")


class RecordingUploader(StorageUploader):
    """Object store double that keeps uploads in memory."""

    def __init__(self, public_base_url="https://cdn.example.com", fail=False):
        super().__init__(public_base_url)
        self.fail = fail
        self.objects = {}

    def upload(self, data, key, content_type=''):
        if self.fail:
            raise StorageUploadError("bucket unavailable")
        self.objects[key] = data
        return self.public_url(key)


class TestNormalizer(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.config = ConfigLoader.with_defaults()
        self.uploader = LocalStorageUploader(self.temp_dir.name, public_base_url='/uploads')

    def tearDown(self):
        self.temp_dir.cleanup()

    def _normalizer(self, payloads, uploader=None, config=None):
        fetcher = FakeFetcher(payloads)
        normalizer = Normalizer(
            config or self.config,
            uploader=uploader or self.uploader,
            fetcher=fetcher,
            clock=lambda: FIXED_NOW
        )
        return normalizer, fetcher

    def test_already_normalized_body_is_unchanged_without_fetching(self):
        normalizer, fetcher = self._normalizer({})
        body = "![a](./images/x.png)"

        new_body, changed = normalizer.normalize(body)

        self.assertEqual(new_body, body)
        self.assertFalse(changed)
        self.assertEqual(fetcher.calls, [])
        self.assertEqual(normalizer.get_stats()['short_circuited'], 1)

    def test_remote_image_is_relocated_to_date_partitioned_key(self):
        url = "https://example.com/p.png"
        normalizer, fetcher = self._normalizer({url: PNG_BYTES})

        new_body, changed = normalizer.normalize(f"Before ![pic]({url}) after")

        self.assertTrue(changed)
        self.assertEqual(fetcher.calls, [url])
        self.assertRegex(
            new_body,
            r'^Before !\[pic\]\(/uploads/articles/2025/11/28/[0-9a-f-]{36}\.png\) after$'
        )
        stored = list(Path(self.temp_dir.name).rglob('*.png'))
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0].read_bytes(), PNG_BYTES)

    def test_second_run_is_idempotent(self):
        url = "https://example.com/p.png"
        normalizer, fetcher = self._normalizer({url: PNG_BYTES})

        first_body, first_changed = normalizer.normalize(f"![a]({url})")
        second_body, second_changed = normalizer.normalize(first_body)

        self.assertTrue(first_changed)
        self.assertFalse(second_changed)
        self.assertEqual(second_body, first_body)
        self.assertEqual(len(fetcher.calls), 1)

    def test_remote_storage_urls_count_as_normalized(self):
        url = "https://example.com/p.png"
        uploader = RecordingUploader("https://cdn.example.com")
        normalizer, fetcher = self._normalizer({url: PNG_BYTES}, uploader=uploader)

        first_body, _ = normalizer.normalize(f"![a]({url})")
        second_body, changed = normalizer.normalize(first_body)

        self.assertTrue(first_body.startswith("![a](https://cdn.example.com/articles/2025/11/28/"))
        self.assertFalse(changed)
        self.assertEqual(second_body, first_body)
        self.assertEqual(len(fetcher.calls), 1)
        self.assertEqual(len(uploader.objects), 1)

    def test_local_links_are_not_relocated(self):
        normalizer, fetcher = self._normalizer({})
        body = "![a](/uploads/articles/2025/01/01/a.png)"

        new_body, changed = normalizer.normalize(body)

        self.assertEqual(new_body, body)
        self.assertFalse(changed)
        self.assertEqual(fetcher.calls, [])

    def test_failed_fetch_leaves_body_unchanged(self):
        normalizer, _ = self._normalizer({})
        body = "![a](https://example.com/missing.png)"

        new_body, changed = normalizer.normalize(body)

        self.assertEqual(new_body, body)
        self.assertFalse(changed)
        self.assertEqual(normalizer.get_stats()['images_failed'], 1)

    def test_token_like_text_does_not_change_body_on_failure(self):
        body = "@@ASSET-000000000000-5![a](https://example.com/missing.png)"
        normalizer, _ = self._normalizer({})

        new_body, changed = normalizer.normalize(body)

        self.assertEqual(new_body, body)
        self.assertFalse(changed)

    def test_upload_failure_keeps_original_link(self):
        url = "https://example.com/p.png"
        normalizer, _ = self._normalizer({url: PNG_BYTES}, uploader=RecordingUploader(fail=True))

        new_body, changed = normalizer.normalize(f"![a]({url})")

        self.assertEqual(new_body, f"![a]({url})")
        self.assertFalse(changed)
        self.assertEqual(normalizer.last_outcome.failed, 1)

    def test_partial_success_rewrites_only_relocated_links(self):
        ok_url = "https://example.com/ok.png"
        bad_url = "https://example.com/bad.png"
        normalizer, _ = self._normalizer({ok_url: PNG_BYTES})

        new_body, changed = normalizer.normalize(f"![x]({ok_url}) ![y]({bad_url})")

        self.assertTrue(changed)
        self.assertIn(f"![y]({bad_url})", new_body)
        self.assertNotIn(ok_url, new_body)

    def test_shared_cache_uploads_once_per_batch(self):
        url = "https://example.com/p.png"
        uploader = RecordingUploader()
        normalizer, fetcher = self._normalizer({url: PNG_BYTES}, uploader=uploader)
        cache = AssetCache()

        first, _ = normalizer.normalize(f"![a]({url})", cache=cache)
        second, _ = normalizer.normalize(f"![b]({url})", cache=cache)

        self.assertEqual(fetcher.calls, [url])
        self.assertEqual(len(uploader.objects), 1)
        self.assertEqual(first[len("![a]"):], second[len("![b]"):])

    def test_only_hosts_short_circuits_other_bodies(self):
        config = ConfigLoader.with_defaults({'normalize': {'only_hosts': ['cdn.nlark.com']}})
        normalizer, fetcher = self._normalizer({}, config=config)

        new_body, changed = normalizer.normalize("![a](https://example.com/p.png)")

        self.assertFalse(changed)
        self.assertEqual(fetcher.calls, [])

    def test_clean_content_option(self):
        url = "https://example.com/p.png"
        config = ConfigLoader.with_defaults({'normalize': {'clean_content': True}})
        normalizer, _ = self._normalizer({url: PNG_BYTES}, config=config)

        new_body, changed = normalizer.normalize(f"`<font color=red>hot</font>` ![a]({url})")

        self.assertTrue(changed)
        self.assertTrue(new_body.startswith("<font color=red>hot</font> ![a](/uploads/articles/"))


if __name__ == '__main__':
    unittest.main()
