"""Converters package: image reference scanning and link rewriting for markdown bodies."""

from .content_cleaner import clean_markdown_content
from .link_rewriter import FinalForm, LinkRewriter, relative_path_form, storage_url_form
from .reference_scanner import (
    IMAGE_LINK_PATTERN,
    PLACEHOLDER_PATTERN,
    ReferenceScanner,
    ScanError,
    ScanResult
)

__all__ = [
    'clean_markdown_content',
    'FinalForm',
    'LinkRewriter',
    'relative_path_form',
    'storage_url_form',
    'IMAGE_LINK_PATTERN',
    'PLACEHOLDER_PATTERN',
    'ReferenceScanner',
    'ScanError',
    'ScanResult'
]
