"""Link rewriter for replacing scanner placeholders with final image links."""

import logging
import re
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional

from ..models import FetchResult, ImageReference

logger = logging.getLogger('markdown_asset_pipeline.converters.link_rewriter')

# (alt_text, location) -> markdown
FinalForm = Callable[[str, str], str]


def relative_path_form(directory: str = 'images') -> FinalForm:
    """Final form for archive bundles: ``![alt](./images/<filename>)``."""
    directory = directory.strip('/')

    def render(alt_text: str, filename: str) -> str:
        return f"![{alt_text}](./{directory}/{filename})"

    return render


def storage_url_form(alt_text: str, url: str) -> str:
    """Final form for durable storage: ``![alt](<url>)``."""
    return f"![{alt_text}]({url})"


class LinkRewriter:
    """
    Replaces placeholder tokens with their final image links.

    Substitution is keyed by the exact token, never by URL text, so a URL
    that is a substring of another cannot be rewritten by mistake.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize the link rewriter.

        Args:
            logger: Logger instance
        """
        self.logger = logger or logging.getLogger('markdown_asset_pipeline.converters.link_rewriter')

    def rewrite(
        self,
        marked_body: str,
        results: Iterable[FetchResult],
        final_form: FinalForm,
        references: Optional[List[ImageReference]] = None
    ) -> str:
        """
        Substitute every placeholder in a marked body.

        Successful results get ``final_form(alt, location)``; failed results and
        references with no result get their original ``![alt](url)`` back.

        Args:
            marked_body: Body returned by ReferenceScanner.scan
            results: FetchResult per reference
            final_form: Template for successfully relocated assets
            references: All references of the scan, to cover any without a result

        Returns:
            Body with no placeholder tokens left from this scan
        """
        by_token: Dict[str, FetchResult] = {}
        for result in results:
            by_token[result.reference.placeholder_token] = result

        known: Dict[str, ImageReference] = {
            token: result.reference for token, result in by_token.items()
        }
        for reference in references or []:
            known.setdefault(reference.placeholder_token, reference)

        if not known:
            return marked_body

        # Only this scan's tokens; look-alike text in the body is never consumed
        token_pattern = re.compile('|'.join(re.escape(token) for token in known))

        seen = defaultdict(int)
        rewritten_count = 0
        restored_count = 0

        def replace_token(match):
            nonlocal rewritten_count, restored_count
            token = match.group(0)
            reference = known[token]
            occurrence = seen[token]
            seen[token] += 1
            alts = reference.occurrence_alts
            alt_text = alts[occurrence] if occurrence < len(alts) else reference.alt_text

            result = by_token.get(token)
            if result is not None and result.ok:
                rewritten_count += 1
                return final_form(alt_text, result.location)

            restored_count += 1
            return reference.original_link(alt_text)

        final_body = token_pattern.sub(replace_token, marked_body)

        self.logger.debug(
            f"Rewrote {rewritten_count} image link(s), restored {restored_count} original link(s)"
        )

        return final_body


__all__ = ['FinalForm', 'LinkRewriter', 'relative_path_form', 'storage_url_form']
