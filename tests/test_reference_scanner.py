"""Tests for image reference scanning and placeholder insertion."""

import unittest

from markdown_asset_pipeline.config_loader import ConfigLoader
from markdown_asset_pipeline.converters import PLACEHOLDER_PATTERN, ReferenceScanner, ScanError
from markdown_asset_pipeline.models import ReferenceOrigin


class TestReferenceScanner(unittest.TestCase):
    def setUp(self):
        self.scanner = ReferenceScanner()

    def test_body_without_images_is_unchanged(self):
        """Scanning plain text returns the body untouched and no references."""
        body = "# Title\n\nSome [link](https://example.com) and `code`."
        result = self.scanner.scan(body)

        self.assertEqual(result.marked_body, body)
        self.assertEqual(result.references, [])
        self.assertEqual(result.skipped, 0)

    def test_same_url_twice_yields_one_reference(self):
        """Repeated targets share one reference and one token."""
        body = "![a](https://example.com/p.png) text ![b](https://example.com/p.png)"
        result = self.scanner.scan(body)

        self.assertEqual(len(result.references), 1)
        reference = result.references[0]
        self.assertEqual(reference.original_url, "https://example.com/p.png")
        self.assertEqual(reference.alt_text, "a")
        self.assertEqual(reference.occurrence_alts, ("a", "b"))
        self.assertEqual(result.marked_body.count(reference.placeholder_token), 2)
        self.assertNotIn("https://example.com/p.png", result.marked_body)

    def test_references_follow_scan_order(self):
        body = "![x](/uploads/b.png)\n![y](https://example.com/a.png)"
        result = self.scanner.scan(body)

        self.assertEqual(
            [ref.original_url for ref in result.references],
            ["/uploads/b.png", "https://example.com/a.png"]
        )
        self.assertEqual(result.references[0].origin, ReferenceOrigin.LOCAL)
        self.assertEqual(result.references[1].origin, ReferenceOrigin.REMOTE)

        indexes = [int(PLACEHOLDER_PATTERN.fullmatch(token).group(2)) for token in result.tokens]
        self.assertEqual(indexes, [0, 1])

    def test_tokens_share_one_nonce_per_scan(self):
        body = "![a](https://example.com/1.png) ![b](https://example.com/2.png)"
        first = self.scanner.scan(body)
        second = self.scanner.scan(body)

        nonces = {PLACEHOLDER_PATTERN.fullmatch(token).group(1) for token in first.tokens}
        self.assertEqual(len(nonces), 1)
        self.assertNotEqual(first.tokens, second.tokens)

    def test_malformed_links_are_left_verbatim(self):
        """Broken image syntax is not an error and is not extracted."""
        body = (
            "![unterminated](https://example.com/a.png\n"
            "![spaced](https://example.com/a b.png)\n"
            "![titled](https://example.com/c.png \"title\")\n"
            "![](  )"
        )
        result = self.scanner.scan(body)

        self.assertEqual(result.marked_body, body)
        self.assertEqual(result.references, [])

    def test_already_normalized_links_are_untouched(self):
        body = "![x](./images/x.png) and ![y](../images/y.png)"
        result = self.scanner.scan(body)

        self.assertEqual(result.marked_body, body)
        self.assertEqual(result.references, [])
        self.assertEqual(result.skipped, 2)

    def test_unsupported_targets_are_skipped(self):
        body = "![d](data:image/png;base64,AAAA) ![r](relative.png)"
        result = self.scanner.scan(body)

        self.assertEqual(result.marked_body, body)
        self.assertEqual(result.skipped, 2)

    def test_origin_filter_leaves_local_links(self):
        """Scanning for remote links only keeps local links as written."""
        body = "![l](/uploads/a.png) ![r](https://example.com/b.png)"
        result = self.scanner.scan(body, (ReferenceOrigin.REMOTE,))

        self.assertEqual(len(result.references), 1)
        self.assertIn("![l](/uploads/a.png)", result.marked_body)
        self.assertEqual(result.skipped, 1)

    def test_normalized_markers_classify_storage_urls(self):
        config = ConfigLoader.with_defaults({'scanner': {'normalized_markers': ['aliyuncs.com']}})
        scanner = ReferenceScanner(config)

        self.assertEqual(
            scanner.classify("https://bucket.oss-cn-hangzhou.aliyuncs.com/a.png"),
            ReferenceOrigin.ALREADY_NORMALIZED
        )
        self.assertEqual(scanner.classify("https://example.com/a.png"), ReferenceOrigin.REMOTE)
        self.assertEqual(scanner.classify("HTTPS://EXAMPLE.COM/A.PNG"), ReferenceOrigin.REMOTE)
        self.assertIsNone(scanner.classify("ftp://example.com/a.png"))

    def test_has_candidates(self):
        self.assertTrue(self.scanner.has_candidates("![a](https://example.com/a.png)"))
        self.assertFalse(self.scanner.has_candidates("![a](./images/a.png)"))
        self.assertFalse(self.scanner.has_candidates("![a](/uploads/a.png)"))
        self.assertTrue(self.scanner.has_candidates(
            "![a](/uploads/a.png)", (ReferenceOrigin.LOCAL,)))
        self.assertFalse(self.scanner.has_candidates(""))

    def test_non_text_body_raises(self):
        with self.assertRaises(ScanError):
            self.scanner.scan(None)


if __name__ == '__main__':
    unittest.main()
