"""Archive builder for exporting documents and their images as one zip bundle."""

import io
import logging
import re
import sys
import threading
import zipfile
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from tqdm import tqdm

from ..config_loader import DEFAULT_CONFIG, get_nested
from ..converters import relative_path_form
from ..fetchers import BaseFetcher, FilenameResolver
from ..models import AssetCache, AssetPipelineError, Document, FetchResult, PipelineOutcome
from ..orchestrator.asset_pipeline import AssetPipeline, AssetSink
from .front_matter import generate_front_matter

MAX_TITLE_CHARS = 50
TITLE_SEPARATORS_PATTERN = re.compile(r'[ /\\]')
TITLE_UNSAFE_PATTERN = re.compile(r'[^a-zA-Z0-9\-]')


class ArchiveWriteError(AssetPipelineError):
    """One archive entry could not be written; the entry is skipped."""
    pass


class ArchiveFinalizeError(AssetPipelineError):
    """The archive could not be closed; the export call fails."""
    pass


class ArchiveAssetSink(AssetSink):
    """Writes fetched assets into the archive's image directory."""

    def __init__(self, write_entry: Callable[[str, bytes], None], resolver: FilenameResolver,
                 image_directory: str = 'images'):
        self.write_entry = write_entry
        self.resolver = resolver
        self.image_directory = image_directory.strip('/')
        self._render = relative_path_form(self.image_directory)

    def store(self, result: FetchResult, cache: AssetCache) -> Tuple[str, Optional[str]]:
        filename = self.resolver.resolve(
            result.reference.original_url,
            result.content_type,
            result.data,
            cache=cache
        )
        self.write_entry(f"{self.image_directory}/{filename}", result.data)
        return filename, filename

    def final_form(self, alt_text: str, location: str) -> str:
        return self._render(alt_text, location)


class ArchiveBuilder:
    """
    Builds a portable offline bundle from document snapshots.

    This builder:
    1. Prefixes each document with descriptive front matter
    2. Fetches every local/remote image once per export, reusing assets across documents
    3. Rewrites image links to ``./images/<filename>``
    4. Writes ``<id>-<title>.md`` entries plus ``images/<filename>`` entries
    5. Finalizes the archive only after every document was processed
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        fetcher: Optional[BaseFetcher] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the archive builder.

        Args:
            config: Configuration dictionary
            fetcher: Fetcher (AssetFetcher built from config if omitted)
            logger: Logger instance
        """
        self.config = config or DEFAULT_CONFIG
        self.logger = logger or logging.getLogger('markdown_asset_pipeline.exporters.archive_builder')

        self.image_directory = get_nested(
            self.config, 'export.image_directory', DEFAULT_CONFIG['export']['image_directory'])
        self.show_progress = get_nested(self.config, 'export.progress_bars', True)

        self.pipeline = AssetPipeline(self.config, fetcher=fetcher, logger=self.logger)
        # Content-type sniffing maps svg only on the ingestion path
        self.resolver = FilenameResolver(map_svg=False)

        # Archives are not safe for concurrent writers
        self._write_lock = threading.Lock()
        self.outcomes: List[PipelineOutcome] = []
        self.stats = self._empty_stats()

    def build(self, documents: Iterable[Document]) -> bytes:
        """
        Export documents into an in-memory zip archive.

        Args:
            documents: Ordered document snapshots

        Returns:
            Serialized archive bytes

        Raises:
            ArchiveFinalizeError: If the archive cannot be finalized
        """
        # Reading the input list is allowed to fail the whole call
        documents = list(documents)

        self.stats = self._empty_stats()
        self.stats['documents_total'] = len(documents)
        self.outcomes = []

        cache = AssetCache()
        buffer = io.BytesIO()
        archive = zipfile.ZipFile(buffer, mode='w', compression=zipfile.ZIP_DEFLATED)
        entry_time = datetime.now().timetuple()[:6]
        entry_names: Set[str] = set()

        sink = ArchiveAssetSink(
            write_entry=lambda name, data: self._write_entry(archive, name, data, entry_time),
            resolver=self.resolver,
            image_directory=self.image_directory
        )

        self.logger.info(f"Exporting {len(documents)} document(s) to archive")

        documents_iter = documents
        if self._should_show_progress():
            documents_iter = tqdm(documents, desc="Exporting documents", unit="doc", leave=False)

        for document in documents_iter:
            try:
                outcome = self.pipeline.run(document.body or '', sink, cache=cache, document_id=document.id)
                content = generate_front_matter(document) + outcome.body

                entry_name = self._unique_entry_name(self.generate_entry_name(document), entry_names)
                self._write_entry(archive, entry_name, content.encode('utf-8'), entry_time)

                self.outcomes.append(outcome)
                self._record(outcome)
                self.stats['documents_written'] += 1
                self.logger.debug(f"Added document {document.id} as {entry_name}")
            except Exception as e:
                self.logger.error(f"Failed to export document {document.id} '{document.title}': {e}",
                                  exc_info=not isinstance(e, AssetPipelineError))
                self.stats['documents_failed'] += 1

        self.stats['fetch_attempts'] = cache.fetch_count

        try:
            archive.close()
        except Exception as e:
            raise ArchiveFinalizeError(f"Failed to finalize archive: {e}") from e

        data = buffer.getvalue()
        self.logger.info(
            f"Archive ready: {self.stats['documents_written']}/{len(documents)} documents, "
            f"{self.stats['images_written']} images, {self.stats['images_failed']} images kept as links "
            f"({len(data)} bytes)"
        )
        return data

    @staticmethod
    def generate_entry_name(document: Document) -> str:
        """
        Archive entry name for a document: ``<id>-<title>.md``.

        The title keeps only ASCII letters, digits and hyphens (spaces and
        slashes become hyphens) and is cut to 50 characters.
        """
        title = TITLE_SEPARATORS_PATTERN.sub('-', document.title or '')
        title = TITLE_UNSAFE_PATTERN.sub('', title)[:MAX_TITLE_CHARS]
        return f"{document.id}-{title}.md"

    def _write_entry(self, archive: zipfile.ZipFile, name: str, data: bytes,
                     entry_time: Tuple[int, ...]) -> None:
        """Write one archive entry; serialized across threads."""
        info = zipfile.ZipInfo(name, date_time=entry_time)
        info.compress_type = zipfile.ZIP_DEFLATED
        with self._write_lock:
            try:
                archive.writestr(info, data)
            except (OSError, ValueError, RuntimeError, zipfile.BadZipFile) as e:
                raise ArchiveWriteError(f"Failed to write archive entry '{name}': {e}") from e
            if name.startswith(f"{self.image_directory}/"):
                self.stats['images_written'] += 1

    @staticmethod
    def _unique_entry_name(name: str, taken: Set[str]) -> str:
        candidate = name
        counter = 2
        while candidate in taken:
            candidate = f"{name[:-3]}-{counter}.md"
            counter += 1
        taken.add(candidate)
        return candidate

    def _record(self, outcome: PipelineOutcome) -> None:
        self.stats['images_reused'] += sum(1 for r in outcome.results if r.from_cache and r.ok)
        self.stats['images_failed'] += outcome.failed
        self.stats['images_skipped'] += outcome.skipped

    def _should_show_progress(self) -> bool:
        """Check if progress bars should be displayed."""
        return bool(self.show_progress) and sys.stdout.isatty()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            'documents_total': 0,
            'documents_written': 0,
            'documents_failed': 0,
            'images_written': 0,
            'images_reused': 0,
            'images_failed': 0,
            'images_skipped': 0,
            'fetch_attempts': 0
        }

    def get_stats(self) -> Dict[str, int]:
        """Get export statistics of the last build."""
        return self.stats.copy()


__all__ = ['ArchiveAssetSink', 'ArchiveBuilder', 'ArchiveFinalizeError', 'ArchiveWriteError']
