"""Fetchers package for retrieving image bytes from local storage or remote origins."""

from .asset_fetcher import AssetFetcher
from .base_fetcher import BaseFetcher, FetchError, ProxyFetchError
from .filename_resolver import FilenameResolver

__all__ = [
    'AssetFetcher',
    'BaseFetcher',
    'FetchError',
    'ProxyFetchError',
    'FilenameResolver'
]
