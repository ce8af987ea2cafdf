"""Filename and storage-key derivation for fetched assets."""

import hashlib
import logging
import re
import uuid
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

from filetype import guess

from ..models import AssetCache

logger = logging.getLogger('markdown_asset_pipeline.fetchers.filename_resolver')

DEFAULT_EXTENSION = '.jpg'

# Substring of the content type -> extension, checked in order
CONTENT_TYPE_EXTENSIONS: List[Tuple[str, str]] = [
    ('jpeg', '.jpg'),
    ('jpg', '.jpg'),
    ('png', '.png'),
    ('gif', '.gif'),
    ('webp', '.webp'),
    ('svg', '.svg'),
]

EXTENSION_PATTERN = re.compile(r'^\.[A-Za-z0-9]{1,5}$')
UNSAFE_CHARS_PATTERN = re.compile(r'[^A-Za-z0-9._-]+')


class FilenameResolver:
    """
    Derives safe, collision-free filenames for fetched assets.

    The extension comes from the URL's last path segment when it has one,
    otherwise from the response content type, otherwise from the bytes.
    """

    def __init__(self, map_svg: bool = True, logger: Optional[logging.Logger] = None):
        """
        Initialize the resolver.

        Args:
            map_svg: Map ``image/svg+xml`` to ``.svg`` (otherwise it falls to the default)
            logger: Logger instance
        """
        self.map_svg = map_svg
        self.logger = logger or logging.getLogger('markdown_asset_pipeline.fetchers.filename_resolver')

    def resolve(
        self,
        original_url: str,
        content_type: str = '',
        data: Optional[bytes] = None,
        cache: Optional[AssetCache] = None
    ) -> str:
        """
        Derive a filename for an asset.

        Args:
            original_url: URL or local path as written in the document
            content_type: Response content type, used when the URL has no extension
            data: Asset bytes, sniffed when the content type is not conclusive
            cache: Run cache used to keep names unique across documents

        Returns:
            Filename such as ``diagram.png`` or ``<hex id>.png``
        """
        stem, extension = self.split_url_name(original_url)
        if extension is None:
            extension = self.extension_from_content(content_type, data)
            # No trustworthy name without an extension
            stem = None

        if not stem:
            stem = uuid.uuid4().hex

        filename = f"{stem}{extension}"
        if cache is None or cache.claim_name(filename, original_url):
            return filename

        url_hash = hashlib.sha1(original_url.encode('utf-8')).hexdigest()[:8]
        filename = f"{stem}-{url_hash}{extension}"
        if cache.claim_name(filename, original_url):
            self.logger.debug(f"Filename collision for {original_url}, using {filename}")
            return filename

        filename = f"{uuid.uuid4().hex}{extension}"
        cache.claim_name(filename, original_url)
        return filename

    def extension_for(self, original_url: str, content_type: str = '', data: Optional[bytes] = None) -> str:
        """Extension from the URL if it has a usable one, else from content."""
        _, extension = self.split_url_name(original_url)
        if extension is not None:
            return extension
        return self.extension_from_content(content_type, data)

    def storage_key(
        self,
        folder: str,
        original_url: str,
        content_type: str = '',
        data: Optional[bytes] = None,
        now: Optional[datetime] = None
    ) -> str:
        """
        Build a date-partitioned storage key: ``<folder>/<yyyy>/<mm>/<dd>/<id><ext>``.

        Args:
            folder: Top-level storage folder
            original_url: Original image URL
            content_type: Response content type
            data: Asset bytes
            now: Timestamp for the date partition (defaults to now)

        Returns:
            Storage key
        """
        now = now or datetime.now()
        extension = self.extension_for(original_url, content_type, data)
        return f"{folder.strip('/')}/{now.strftime('%Y/%m/%d')}/{uuid.uuid4()}{extension}"

    def extension_from_content(self, content_type: Optional[str], data: Optional[bytes] = None) -> str:
        """
        Map a content type (or sniffed bytes) to an extension.

        Args:
            content_type: Content-Type header value
            data: Asset bytes

        Returns:
            Extension including the dot; ``.jpg`` when nothing matches
        """
        lowered = (content_type or '').lower()
        for marker, extension in CONTENT_TYPE_EXTENSIONS:
            if marker == 'svg' and not self.map_svg:
                continue
            if marker in lowered:
                return extension

        if data:
            kind = guess(data)
            if kind and kind.mime.startswith('image/'):
                ext = kind.extension.lower()
                return '.jpg' if ext == 'jpeg' else f".{ext}"

        return DEFAULT_EXTENSION

    @staticmethod
    def split_url_name(original_url: str) -> Tuple[Optional[str], Optional[str]]:
        """
        Split the last path segment of a URL into a safe stem and extension.

        Query string and fragment are ignored. Returns ``(None, None)`` when
        the segment has no usable extension.
        """
        path = urlparse(original_url).path or ''
        segment = unquote(path.rstrip('/').split('/')[-1])
        if '.' not in segment:
            return None, None

        stem, _, suffix = segment.rpartition('.')
        extension = f".{suffix}"
        if not EXTENSION_PATTERN.match(extension):
            return None, None

        safe_stem = UNSAFE_CHARS_PATTERN.sub('-', stem).strip('-.')
        return safe_stem or None, extension.lower()


__all__ = ['DEFAULT_EXTENSION', 'FilenameResolver']
