"""Image reference scanner for markdown bodies."""

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..config_loader import DEFAULT_CONFIG, get_nested
from ..models import AssetPipelineError, ImageReference, ReferenceOrigin

logger = logging.getLogger('markdown_asset_pipeline.converters.reference_scanner')

# ![alt](target): no nested brackets in alt, no whitespace or parens in target
IMAGE_LINK_PATTERN = re.compile(r'!\[([^\[\]\n]*)\]\(([^()\s]+)\)')

PLACEHOLDER_PREFIX = '@@ASSET-'
PLACEHOLDER_PATTERN = re.compile(r'@@ASSET-([0-9a-f]{12})-(\d+)@@')

REMOTE_SCHEMES = ('http://', 'https://')


class ScanError(AssetPipelineError):
    """Raised when the scanner is handed something that is not text."""
    pass


@dataclass
class ScanResult:
    """Body with placeholders plus the references they stand for."""

    marked_body: str
    references: List[ImageReference] = field(default_factory=list)
    skipped: int = 0

    @property
    def tokens(self) -> List[str]:
        return [ref.placeholder_token for ref in self.references]


class ReferenceScanner:
    """
    Finds ``![alt](target)`` links, classifies them and swaps them for placeholders.

    This scanner:
    1. Matches image-link syntax only (malformed links stay verbatim)
    2. Classifies each target as local, remote or already normalized
    3. Creates one ImageReference per distinct target, in scan order
    4. Replaces every occurrence of an extracted target with its token
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the scanner.

        Args:
            config: Configuration dictionary (``scanner`` section is used)
            logger: Logger instance
        """
        config = config or DEFAULT_CONFIG
        self.logger = logger or logging.getLogger('markdown_asset_pipeline.converters.reference_scanner')
        self.local_prefixes = tuple(get_nested(
            config, 'scanner.local_prefixes', DEFAULT_CONFIG['scanner']['local_prefixes']))
        self.normalized_prefixes = tuple(get_nested(
            config, 'scanner.normalized_prefixes', DEFAULT_CONFIG['scanner']['normalized_prefixes']))
        self.normalized_markers = tuple(get_nested(config, 'scanner.normalized_markers', []) or ())

    def classify(self, target: str) -> Optional[ReferenceOrigin]:
        """
        Classify an image target.

        Args:
            target: Link target as written in the document

        Returns:
            ReferenceOrigin, or None for targets the pipeline does not handle
            (data: URIs, bare relative names, ...)
        """
        if target.startswith(self.normalized_prefixes):
            return ReferenceOrigin.ALREADY_NORMALIZED
        if self.normalized_markers and any(marker in target for marker in self.normalized_markers):
            return ReferenceOrigin.ALREADY_NORMALIZED
        if self.local_prefixes and target.startswith(self.local_prefixes):
            return ReferenceOrigin.LOCAL
        if target.lower().startswith(REMOTE_SCHEMES):
            return ReferenceOrigin.REMOTE
        return None

    def scan(
        self,
        body: str,
        origins: Iterable[ReferenceOrigin] = (ReferenceOrigin.LOCAL, ReferenceOrigin.REMOTE)
    ) -> ScanResult:
        """
        Scan a body and replace extractable image links with placeholder tokens.

        Args:
            body: Markdown text
            origins: Origins to extract; other links are left untouched

        Returns:
            ScanResult with the marked body and ordered references

        Raises:
            ScanError: If body is not a string
        """
        if not isinstance(body, str):
            raise ScanError(f"Expected text body, got {type(body).__name__}")

        wanted = set(origins)
        wanted.discard(ReferenceOrigin.ALREADY_NORMALIZED)
        nonce = self._new_nonce(body)

        # {url: {'token', 'origin', 'alts'}} in first-seen order
        found: Dict[str, Dict[str, Any]] = {}
        skipped = 0

        def replace_link(match):
            nonlocal skipped
            alt_text, target = match.group(1), match.group(2)

            origin = self.classify(target)
            if origin is None or origin not in wanted:
                skipped += 1
                return match.group(0)

            entry = found.get(target)
            if entry is None:
                entry = {
                    'token': f"{PLACEHOLDER_PREFIX}{nonce}-{len(found)}@@",
                    'origin': origin,
                    'alts': []
                }
                found[target] = entry
            entry['alts'].append(alt_text)
            return entry['token']

        marked_body = IMAGE_LINK_PATTERN.sub(replace_link, body)

        references = [
            ImageReference(
                alt_text=entry['alts'][0],
                original_url=url,
                origin=entry['origin'],
                placeholder_token=entry['token'],
                occurrence_alts=tuple(entry['alts'])
            )
            for url, entry in found.items()
        ]

        if references:
            self.logger.debug(
                f"Found {len(references)} image reference(s), {skipped} left untouched"
            )

        return ScanResult(marked_body=marked_body, references=references, skipped=skipped)

    def has_candidates(
        self,
        body: str,
        origins: Iterable[ReferenceOrigin] = (ReferenceOrigin.REMOTE,)
    ) -> bool:
        """Check whether a body holds at least one link of the given origins."""
        if not body:
            return False
        wanted = set(origins)
        for match in IMAGE_LINK_PATTERN.finditer(body):
            if self.classify(match.group(2)) in wanted:
                return True
        return False

    @staticmethod
    def _new_nonce(body: str) -> str:
        """Pick a token nonce that does not already occur in the body."""
        while True:
            nonce = uuid.uuid4().hex[:12]
            if f"{PLACEHOLDER_PREFIX}{nonce}-" not in body:
                return nonce


__all__ = [
    'IMAGE_LINK_PATTERN',
    'PLACEHOLDER_PATTERN',
    'ReferenceScanner',
    'ScanError',
    'ScanResult'
]
