"""
Asset pipeline shared by export and ingestion.

Both consumers run the same three stages, Scan → Fetch → Rewrite, and differ
only in the AssetSink they plug in: where a fetched asset is written and what
the rewritten link looks like.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

from ..config_loader import DEFAULT_CONFIG, get_nested
from ..converters import LinkRewriter, ReferenceScanner
from ..fetchers import AssetFetcher, BaseFetcher
from ..models import (
    AssetCache,
    AssetPipelineError,
    CachedAsset,
    FetchResult,
    ImageReference,
    PipelineOutcome,
    ReferenceOrigin
)

logger = logging.getLogger('markdown_asset_pipeline.orchestrator.asset_pipeline')


class AssetSink(ABC):
    """Write strategy for relocated assets."""

    #: Reference origins this sink relocates; everything else stays as written
    origins: Tuple[ReferenceOrigin, ...] = (ReferenceOrigin.LOCAL, ReferenceOrigin.REMOTE)

    @abstractmethod
    def store(self, result: FetchResult, cache: AssetCache) -> Tuple[str, Optional[str]]:
        """
        Persist a successfully fetched asset.

        Args:
            result: FetchResult with data
            cache: Run cache (for filename uniqueness)

        Returns:
            Tuple of (location used in the final link, resolved filename)

        Raises:
            AssetPipelineError: If the asset cannot be written
        """
        pass

    @abstractmethod
    def final_form(self, alt_text: str, location: str) -> str:
        """Render the rewritten image link."""
        pass


class AssetPipeline:
    """Runs Scan → Fetch → Rewrite for one document body at a time."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        scanner: Optional[ReferenceScanner] = None,
        fetcher: Optional[BaseFetcher] = None,
        rewriter: Optional[LinkRewriter] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the pipeline.

        Args:
            config: Configuration dictionary
            scanner: ReferenceScanner (created from config if omitted)
            fetcher: Fetcher (AssetFetcher created from config if omitted)
            rewriter: LinkRewriter (created if omitted)
            logger: Logger instance
        """
        self.config = config or DEFAULT_CONFIG
        self.logger = logger or logging.getLogger('markdown_asset_pipeline.orchestrator.asset_pipeline')
        self.scanner = scanner or ReferenceScanner(self.config)
        self.fetcher = fetcher or AssetFetcher(self.config)
        self.rewriter = rewriter or LinkRewriter()
        self.max_workers = get_nested(self.config, 'fetcher.max_workers', 1)

    def run(
        self,
        body: str,
        sink: AssetSink,
        cache: Optional[AssetCache] = None,
        document_id: Any = None
    ) -> PipelineOutcome:
        """
        Process one document body.

        Args:
            body: Markdown text
            sink: Write strategy
            cache: Run-scoped dedup cache (a fresh one is used if omitted)
            document_id: Identifier used in log lines and the outcome

        Returns:
            PipelineOutcome with the rewritten body and counters
        """
        cache = cache if cache is not None else AssetCache()
        scan = self.scanner.scan(body, sink.origins)

        if not scan.references:
            return PipelineOutcome(body=body, document_id=document_id, skipped=scan.skipped)

        results = self._resolve_all(scan.references, sink, cache)
        final_body = self.rewriter.rewrite(
            scan.marked_body,
            results,
            sink.final_form,
            references=scan.references
        )

        succeeded = sum(1 for result in results if result.ok)
        outcome = PipelineOutcome(
            body=final_body,
            document_id=document_id,
            succeeded=succeeded,
            skipped=scan.skipped,
            failed=len(results) - succeeded,
            results=results
        )

        self.logger.debug(
            f"Document {document_id}: {outcome.succeeded} relocated, "
            f"{outcome.skipped} skipped, {outcome.failed} failed"
        )
        return outcome

    def _resolve_all(
        self,
        references: List[ImageReference],
        sink: AssetSink,
        cache: AssetCache
    ) -> List[FetchResult]:
        """Resolve every reference, consulting the cache before any fetch."""
        results: List[Optional[FetchResult]] = [None] * len(references)
        pending: List[int] = []

        for index, reference in enumerate(references):
            cached = cache.get(reference.original_url)
            if cached is not None:
                results[index] = self._from_cache(reference, cached)
            else:
                pending.append(index)

        if self.max_workers > 1 and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    index: executor.submit(self._resolve_one, references[index], sink, cache)
                    for index in pending
                }
                for index, future in futures.items():
                    results[index] = future.result()
        else:
            for index in pending:
                results[index] = self._resolve_one(references[index], sink, cache)

        return results

    def _resolve_one(self, reference: ImageReference, sink: AssetSink, cache: AssetCache) -> FetchResult:
        """Fetch and store one reference, then record it in the cache."""
        cache.record_fetch()
        try:
            result = self.fetcher.fetch(reference)
        except Exception as e:
            self.logger.error(f"Unexpected error fetching image {reference.original_url}: {e}", exc_info=True)
            result = FetchResult(reference=reference, error=str(e) or type(e).__name__)

        if result.error is None:
            try:
                location, filename = sink.store(result, cache)
                result.location = location
                result.resolved_filename = filename
            except AssetPipelineError as e:
                self.logger.warning(f"Failed to store image {reference.original_url}: {e}")
                result.error = str(e)
            except Exception as e:
                self.logger.error(f"Unexpected error storing image {reference.original_url}: {e}", exc_info=True)
                result.error = str(e) or type(e).__name__

        stored = cache.put(
            reference.original_url,
            CachedAsset(
                location=result.location,
                filename=result.resolved_filename,
                error=result.error
            )
        )
        if stored.location != result.location:
            # Another worker finished first; reuse its asset
            return self._from_cache(reference, stored)
        return result

    @staticmethod
    def _from_cache(reference: ImageReference, cached: CachedAsset) -> FetchResult:
        return FetchResult(
            reference=reference,
            location=cached.location,
            resolved_filename=cached.filename,
            error=cached.error,
            from_cache=True
        )


__all__ = ['AssetPipeline', 'AssetSink']
