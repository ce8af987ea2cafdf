"""
Ingestion-time normalizer.

Relocates externally hosted images in a document body into durable storage and
rewrites the links to the durable-storage URLs.
"""

import copy
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from ..config_loader import DEFAULT_CONFIG, get_nested
from ..converters import ReferenceScanner, clean_markdown_content, storage_url_form
from ..fetchers import BaseFetcher, FilenameResolver
from ..models import AssetCache, FetchResult, PipelineOutcome, ReferenceOrigin
from ..orchestrator.asset_pipeline import AssetPipeline, AssetSink
from .storage import StorageUploader, build_uploader


class DurableStorageSink(AssetSink):
    """Uploads fetched assets under date-partitioned keys and links to their URLs."""

    origins = (ReferenceOrigin.REMOTE,)

    def __init__(
        self,
        uploader: StorageUploader,
        folder: str,
        resolver: FilenameResolver,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.uploader = uploader
        self.folder = folder
        self.resolver = resolver
        self.clock = clock

    def store(self, result: FetchResult, cache: AssetCache) -> Tuple[str, Optional[str]]:
        key = self.resolver.storage_key(
            self.folder,
            result.reference.original_url,
            result.content_type,
            result.data,
            now=self.clock()
        )
        url = self.uploader.upload(result.data, key, result.content_type)
        return url, key.rsplit('/', 1)[-1]

    def final_form(self, alt_text: str, location: str) -> str:
        return storage_url_form(alt_text, location)


class Normalizer:
    """
    Moves remote images of one document body into durable storage.

    Local and already-normalized links are never touched. The result carries a
    ``changed`` flag so callers can skip persisting unchanged bodies.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        uploader: Optional[StorageUploader] = None,
        fetcher: Optional[BaseFetcher] = None,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the normalizer.

        Args:
            config: Configuration dictionary
            uploader: Durable storage backend (built from config if omitted)
            fetcher: Fetcher (AssetFetcher built from config if omitted)
            clock: Source of the date used for storage partitions
            logger: Logger instance
        """
        self.config = config or DEFAULT_CONFIG
        self.logger = logger or logging.getLogger('markdown_asset_pipeline.importers.normalizer')

        self.uploader = uploader or build_uploader(self.config)
        self.folder = get_nested(self.config, 'normalize.folder', DEFAULT_CONFIG['normalize']['folder'])
        self.only_hosts = [host.lower() for host in get_nested(self.config, 'normalize.only_hosts', []) or []]
        self.clean_content = get_nested(self.config, 'normalize.clean_content', False)

        self.scanner = ReferenceScanner(self._scanner_config())
        self.pipeline = AssetPipeline(self.config, scanner=self.scanner, fetcher=fetcher, logger=self.logger)
        self.sink = DurableStorageSink(self.uploader, self.folder, FilenameResolver(), clock=clock)

        self.last_outcome: Optional[PipelineOutcome] = None
        self.stats = {
            'documents': 0,
            'changed': 0,
            'short_circuited': 0,
            'images_relocated': 0,
            'images_skipped': 0,
            'images_failed': 0
        }

    def normalize(self, body: str, cache: Optional[AssetCache] = None) -> Tuple[str, bool]:
        """
        Relocate every remote image of a body.

        Args:
            body: Markdown text
            cache: Dedup cache shared across a batch (fresh one if omitted)

        Returns:
            Tuple of (new_body, changed)
        """
        self.stats['documents'] += 1

        if not self.needs_normalization(body):
            self.stats['short_circuited'] += 1
            self.last_outcome = PipelineOutcome(body=body)
            return body, False

        outcome = self.pipeline.run(body, self.sink, cache=cache)
        self.last_outcome = outcome

        self.stats['images_relocated'] += outcome.succeeded
        self.stats['images_skipped'] += outcome.skipped
        self.stats['images_failed'] += outcome.failed

        new_body = outcome.body
        if self.clean_content:
            new_body = clean_markdown_content(new_body)

        changed = new_body != body
        if changed:
            self.stats['changed'] += 1
        self.logger.debug(
            f"Normalized body: {outcome.succeeded} relocated, {outcome.failed} failed, changed={changed}"
        )
        return new_body, changed

    def needs_normalization(self, body: str) -> bool:
        """Fast check for at least one externally hosted image worth relocating."""
        if not body:
            return False
        if self.only_hosts and not any(host in body.lower() for host in self.only_hosts):
            return False
        return self.scanner.has_candidates(body, (ReferenceOrigin.REMOTE,))

    def get_stats(self) -> Dict[str, int]:
        """Get normalization statistics."""
        return self.stats.copy()

    def _scanner_config(self) -> Dict[str, Any]:
        """Scanner config that also treats our own storage URLs as normalized."""
        scanner_config = copy.deepcopy(self.config)
        scanner_section = scanner_config.setdefault('scanner', {})
        markers = list(scanner_section.get('normalized_markers') or [])

        base_url = self.uploader.public_base_url
        if base_url.lower().startswith(('http://', 'https://')) and base_url not in markers:
            markers.append(base_url)
        scanner_section['normalized_markers'] = markers
        return scanner_config


__all__ = ['DurableStorageSink', 'Normalizer']
