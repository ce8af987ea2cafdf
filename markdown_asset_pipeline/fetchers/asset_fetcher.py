"""Asset fetcher: local storage reads and HTTP retrieval with proxy fallback."""

import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote, urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config_loader import DEFAULT_CONFIG, get_nested
from ..models import FetchResult, ImageReference, ReferenceOrigin
from .base_fetcher import BaseFetcher, FetchError, ProxyFetchError

ACCEPT_HEADER = 'image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8'
ACCEPT_LANGUAGE_HEADER = 'zh-CN,zh;q=0.9,en;q=0.8'


class AssetFetcher(BaseFetcher):
    """
    Retrieves image bytes for classified references.

    This fetcher:
    1. Reads ``local`` references from the local storage root
    2. Downloads ``remote`` references with browser-like headers
    3. Retries once through a rewriting proxy for known-hostile hosts
    4. Reports every failure as a FetchResult error instead of raising
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the asset fetcher.

        Args:
            config: Configuration dictionary (``fetcher`` section is used)
            session: Optional preconfigured requests session
            logger: Logger instance
        """
        super().__init__(config, logger or logging.getLogger('markdown_asset_pipeline.fetchers.asset_fetcher'))
        defaults = DEFAULT_CONFIG['fetcher']

        self.storage_root = Path(get_nested(self.config, 'fetcher.storage_root', defaults['storage_root']))
        self.timeout = get_nested(self.config, 'fetcher.timeout', defaults['timeout'])
        self.user_agent = get_nested(self.config, 'fetcher.user_agent', defaults['user_agent'])
        self.referer = get_nested(self.config, 'fetcher.referer', defaults['referer'])
        self.hostile_hosts = [
            host.lower() for host in get_nested(self.config, 'fetcher.hostile_hosts', defaults['hostile_hosts'])
        ]
        self.proxy_base = get_nested(self.config, 'fetcher.proxy_base', defaults['proxy_base'])
        self.max_file_size = get_nested(self.config, 'fetcher.max_file_size', defaults['max_file_size'])
        max_retries = get_nested(self.config, 'fetcher.max_retries', defaults['max_retries'])

        self._owns_session = session is None
        self.session = session or requests.Session()

        if self._owns_session and max_retries > 0:
            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=1.0,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["HEAD", "GET"]
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

        self.logger.debug(
            f"AssetFetcher configured with timeout={self.timeout}s, max_retries={max_retries}, "
            f"hostile_hosts={self.hostile_hosts}"
        )

    def fetch(self, reference: ImageReference) -> FetchResult:
        """
        Retrieve the bytes for one reference.

        Args:
            reference: Classified image reference

        Returns:
            FetchResult with data and content type, or with ``error`` set
        """
        if reference.origin == ReferenceOrigin.ALREADY_NORMALIZED:
            return FetchResult(reference=reference, error="Reference is already normalized")

        try:
            if reference.origin == ReferenceOrigin.LOCAL:
                data, content_type = self._read_local(reference.original_url)
                via_proxy = False
            else:
                data, content_type, via_proxy = self._fetch_remote(reference.original_url)
        except FetchError as e:
            self.logger.warning(f"Failed to fetch image {reference.original_url}: {e}")
            return FetchResult(reference=reference, error=str(e))

        self.logger.debug(
            f"Fetched {reference.original_url} ({len(data)} bytes{', via proxy' if via_proxy else ''})"
        )
        return FetchResult(
            reference=reference,
            data=data,
            content_type=content_type,
            via_proxy=via_proxy
        )

    def is_hostile_host(self, url: str) -> bool:
        """Check whether a URL's host is on the hostile-host list."""
        host = (urlparse(url).hostname or '').lower()
        if not host:
            return False
        return any(host == hostile or host.endswith('.' + hostile) for hostile in self.hostile_hosts)

    def _read_local(self, url_path: str) -> Tuple[bytes, str]:
        """
        Read a server-local image from the storage root.

        Args:
            url_path: Path as served, e.g. ``/uploads/articles/2025/12/10/a.png``

        Returns:
            Tuple of (content, content_type)
        """
        relative = unquote(urlparse(url_path).path).lstrip('/')
        root = self.storage_root.resolve()
        try:
            file_path = (root / relative).resolve()
        except (OSError, ValueError) as e:
            raise FetchError(f"Invalid local path {url_path}: {e}")

        try:
            file_path.relative_to(root)
        except ValueError:
            raise FetchError(f"Local path escapes storage root: {url_path}")

        try:
            content = file_path.read_bytes()
        except (OSError, ValueError) as e:
            raise FetchError(f"Failed to read local image {file_path}: {e}")

        self._check_size(content, url_path)
        content_type, _ = mimetypes.guess_type(file_path.name)
        return content, content_type or ''

    def _fetch_remote(self, url: str) -> Tuple[bytes, str, bool]:
        """
        Download a remote image, falling back to the proxy for hostile hosts.

        Returns:
            Tuple of (content, content_type, via_proxy)

        Raises:
            FetchError: Primary download failed and no fallback applies
            ProxyFetchError: Primary and proxy downloads both failed
        """
        try:
            content, content_type = self._download(url)
            return content, content_type, False
        except FetchError as primary_error:
            if not self.proxy_base or not self.is_hostile_host(url):
                raise

            proxy_url = self.proxy_base + url
            self.logger.info(f"Direct download failed for {url} ({primary_error}), retrying via proxy")
            try:
                content, content_type = self._download(proxy_url, referer_url=url)
            except FetchError as proxy_error:
                raise ProxyFetchError(
                    f"Proxy download also failed: {proxy_error} (direct: {primary_error})"
                ) from proxy_error
            return content, content_type, True

    def _download(self, url: str, referer_url: Optional[str] = None) -> Tuple[bytes, str]:
        """
        Issue a single GET request.

        Args:
            url: URL to download
            referer_url: URL whose origin is used as Referer (defaults to url)

        Returns:
            Tuple of (content, content_type)
        """
        try:
            response = self.session.get(
                url,
                headers=self._headers_for(referer_url or url),
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise FetchError(f"Request failed: {e}")

        if response.status_code != 200:
            raise FetchError(f"HTTP {response.status_code}")

        content = response.content
        self._check_size(content, url)
        return content, response.headers.get('Content-Type', '')

    def _headers_for(self, url: str) -> Dict[str, str]:
        """Browser-like header set that gets past most hotlink protection."""
        referer = self.referer
        if not referer:
            parsed = urlparse(url)
            referer = f"{parsed.scheme}://{parsed.netloc}/" if parsed.netloc else ''

        headers = {
            'User-Agent': self.user_agent,
            'Accept': ACCEPT_HEADER,
            'Accept-Language': ACCEPT_LANGUAGE_HEADER,
            'Cache-Control': 'no-cache',
            'Pragma': 'no-cache',
        }
        if referer:
            headers['Referer'] = referer
        return headers

    def _check_size(self, content: bytes, source: str) -> None:
        if self.max_file_size > 0 and len(content) > self.max_file_size:
            raise FetchError(
                f"Image {source} is {len(content)} bytes, exceeds limit ({self.max_file_size} bytes)"
            )

    def close(self) -> None:
        if self._owns_session:
            self.session.close()


__all__ = ['AssetFetcher']
