"""Batch normalization of every document held by a document store."""

import logging
import sys
from typing import Any, Dict, Iterable, Optional, Protocol

from tqdm import tqdm

from ..logger import ProgressTracker, log_section
from ..models import AssetCache, Document


class DocumentStore(Protocol):
    """Document store collaborator used by batch normalization."""

    def iter_documents(self) -> Iterable[Document]:
        ...

    def update_body(self, document_id: Any, body: str) -> None:
        ...


class BatchNormalizer:
    """
    Normalizes every document of a store and persists the changed ones.

    One dedup cache is shared by the whole batch, so an image referenced by
    several documents is uploaded once.
    """

    def __init__(self, normalizer, store: DocumentStore, dry_run: bool = False,
                 show_progress: bool = True, logger: Optional[logging.Logger] = None):
        """
        Initialize the batch normalizer.

        Args:
            normalizer: Normalizer instance
            store: Document store to read from and write back to
            dry_run: Normalize but never persist
            show_progress: Show a tqdm progress bar on a TTY
            logger: Logger instance
        """
        self.normalizer = normalizer
        self.store = store
        self.dry_run = dry_run
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('markdown_asset_pipeline.orchestrator.batch_normalizer')

    def run(self) -> Dict[str, int]:
        """
        Normalize all documents.

        Returns:
            Counters: total, succeeded, skipped, failed
        """
        log_section("Normalizing documents")
        documents = list(self.store.iter_documents())
        cache = AssetCache()

        documents_iter = documents
        if self.show_progress and sys.stdout.isatty():
            documents_iter = tqdm(documents, desc="Normalizing documents", unit="doc", leave=False)

        with ProgressTracker(len(documents), "documents", logger=self.logger) as tracker:
            for document in documents_iter:
                try:
                    new_body, changed = self.normalizer.normalize(document.body, cache=cache)
                    if not changed:
                        self.logger.debug(f"Document {document.id}: nothing to relocate")
                        tracker.increment(skipped=True)
                        continue

                    if self.dry_run:
                        self.logger.info(f"Document {document.id}: would update (dry run)")
                    else:
                        self.store.update_body(document.id, new_body)
                        self.logger.info(f"Document {document.id} '{document.title}' updated")
                    tracker.increment(success=True)
                except Exception as e:
                    self.logger.error(f"Failed to normalize document {document.id}: {e}")
                    tracker.increment(success=False)

            stats = tracker.get_stats()

        return {
            'total': stats['total'],
            'succeeded': stats['succeeded'],
            'skipped': stats['skipped'],
            'failed': stats['failed']
        }


__all__ = ['BatchNormalizer', 'DocumentStore']
