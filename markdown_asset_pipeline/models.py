"""Data models for the Markdown asset pipeline."""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple


class AssetPipelineError(Exception):
    """Base exception for all asset pipeline errors."""
    pass


class ReferenceOrigin(Enum):
    """Where an image reference points to."""
    LOCAL = "local"
    REMOTE = "remote"
    ALREADY_NORMALIZED = "already_normalized"


@dataclass
class Document:
    """Snapshot of a document record handed to the pipeline by the document store."""

    id: Any
    title: str
    body: str
    author: str = ""
    category: str = ""
    tags: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    status: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize document to dictionary."""
        return {
            'id': self.id,
            'title': self.title,
            'body': self.body,
            'author': self.author,
            'category': self.category,
            'tags': list(self.tags),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'status': self.status
        }


@dataclass(frozen=True)
class ImageReference:
    """
    One distinct image target found in a document.

    ``occurrence_alts`` holds the alt text of every occurrence of the target in
    scan order; ``alt_text`` is the first of them.
    """

    alt_text: str
    original_url: str
    origin: ReferenceOrigin
    placeholder_token: str
    occurrence_alts: Tuple[str, ...] = ()

    def original_link(self, alt_text: Optional[str] = None) -> str:
        """Render the unmodified ``![alt](url)`` form."""
        alt = self.alt_text if alt_text is None else alt_text
        return f"![{alt}]({self.original_url})"


@dataclass
class FetchResult:
    """Outcome of resolving one ImageReference to bytes and a new location."""

    reference: ImageReference
    data: Optional[bytes] = None
    content_type: str = ""
    resolved_filename: Optional[str] = None
    location: Optional[str] = None
    error: Optional[str] = None
    via_proxy: bool = False
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        """True when the reference can be rewritten to its new location."""
        return self.error is None and self.location is not None


@dataclass
class PipelineOutcome:
    """Rewritten body plus per-reference counters for one document."""

    body: str
    document_id: Any = None
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    results: List[FetchResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize counters to dictionary."""
        return {
            'document_id': self.document_id,
            'succeeded': self.succeeded,
            'skipped': self.skipped,
            'failed': self.failed,
            'errors': [
                {'url': r.reference.original_url, 'error': r.error}
                for r in self.results if r.error
            ]
        }


@dataclass
class CachedAsset:
    """Dedup cache entry: where an original URL ended up, or why it failed."""

    location: Optional[str] = None
    filename: Optional[str] = None
    error: Optional[str] = None


class AssetCache:
    """
    Per-run dedup map of original URL -> resolved asset.

    One instance is created per export or normalize call and passed through
    every component. All access goes through a single lock so fetches may run
    in a thread pool.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, CachedAsset] = {}
        self._names: Dict[str, str] = {}  # {filename: original_url}
        self.fetch_count = 0

    def get(self, url: str) -> Optional[CachedAsset]:
        with self._lock:
            return self._entries.get(url)

    def put(self, url: str, entry: CachedAsset) -> CachedAsset:
        """Store an entry unless one already exists; returns the stored entry."""
        with self._lock:
            existing = self._entries.get(url)
            if existing is not None:
                return existing
            self._entries[url] = entry
            return entry

    def record_fetch(self) -> None:
        with self._lock:
            self.fetch_count += 1

    def claim_name(self, filename: str, url: str) -> bool:
        """
        Reserve a filename for a URL.

        Returns:
            True if the name is free or already belongs to the same URL
        """
        with self._lock:
            owner = self._names.get(filename)
            if owner is None:
                self._names[filename] = url
                return True
            return owner == url

    def assigned_names(self) -> Set[str]:
        with self._lock:
            return set(self._names)

    def __contains__(self, url: str) -> bool:
        with self._lock:
            return url in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    'AssetPipelineError',
    'ReferenceOrigin',
    'Document',
    'ImageReference',
    'FetchResult',
    'PipelineOutcome',
    'CachedAsset',
    'AssetCache'
]
