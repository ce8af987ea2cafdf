"""
Durable storage uploaders for relocated images.

Uploaders take raw bytes and a storage key such as
``articles/2025/11/28/<uuid>.png`` and return the public URL of the stored object.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from ..config_loader import DEFAULT_CONFIG, get_nested
from ..models import AssetPipelineError

logger = logging.getLogger('markdown_asset_pipeline.importers.storage')


class StorageUploadError(AssetPipelineError):
    """Raised when an object cannot be written to durable storage."""
    pass


class StorageUploader(ABC):
    """Abstract durable-storage backend."""

    def __init__(self, public_base_url: str, logger: Optional[logging.Logger] = None):
        self.public_base_url = public_base_url.rstrip('/')
        self.logger = logger or logging.getLogger('markdown_asset_pipeline.importers.storage')

    @abstractmethod
    def upload(self, data: bytes, key: str, content_type: str = '') -> str:
        """
        Store bytes under a key.

        Args:
            data: Object content
            key: Relative storage key
            content_type: MIME type of the content

        Returns:
            Public URL of the stored object

        Raises:
            StorageUploadError: If the object cannot be stored
        """
        pass

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key.lstrip('/')}"


class LocalStorageUploader(StorageUploader):
    """Writes objects below a local directory served under ``public_base_url``."""

    def __init__(self, root: str, public_base_url: str = '/uploads', logger: Optional[logging.Logger] = None):
        super().__init__(public_base_url, logger)
        self.root = Path(root)

    def upload(self, data: bytes, key: str, content_type: str = '') -> str:
        root = self.root.resolve()
        destination = (root / key.lstrip('/')).resolve()
        try:
            destination.relative_to(root)
        except ValueError:
            raise StorageUploadError(f"Storage key escapes storage root: {key}")

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as e:
            raise StorageUploadError(f"Failed to write {destination}: {e}")

        self.logger.debug(f"Stored {len(data)} bytes at {destination}")
        return self.public_url(key)


class HttpStorageUploader(StorageUploader):
    """Uploads objects with ``PUT <upload_url>/<key>`` (object stores, WebDAV, presigned gateways)."""

    def __init__(
        self,
        upload_url: str,
        public_base_url: str,
        token: Optional[str] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(public_base_url, logger)
        self.upload_url = upload_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'

    def upload(self, data: bytes, key: str, content_type: str = '') -> str:
        url = f"{self.upload_url}/{key.lstrip('/')}"
        headers = {'Content-Type': content_type or 'application/octet-stream'}

        try:
            response = self.session.put(url, data=data, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageUploadError(f"Upload to {url} failed: {e}")

        if response.status_code not in (200, 201, 204):
            raise StorageUploadError(f"Upload to {url} failed: HTTP {response.status_code}")

        self.logger.debug(f"Uploaded {len(data)} bytes to {url}")
        return self.public_url(key)


class FallbackStorageUploader(StorageUploader):
    """Tries a primary backend and falls back to a secondary one on failure."""

    def __init__(self, primary: StorageUploader, fallback: StorageUploader, logger: Optional[logging.Logger] = None):
        super().__init__(primary.public_base_url, logger)
        self.primary = primary
        self.fallback = fallback

    def upload(self, data: bytes, key: str, content_type: str = '') -> str:
        try:
            return self.primary.upload(data, key, content_type)
        except StorageUploadError as e:
            self.logger.warning(f"Primary storage failed for {key} ({e}), falling back")
            return self.fallback.upload(data, key, content_type)


def build_uploader(config: Optional[Dict[str, Any]] = None) -> StorageUploader:
    """
    Create the uploader described by the ``storage`` config section.

    Args:
        config: Configuration dictionary

    Returns:
        StorageUploader instance
    """
    config = config or DEFAULT_CONFIG
    defaults = DEFAULT_CONFIG['storage']

    public_base_url = get_nested(config, 'storage.public_base_url', defaults['public_base_url'])
    local_root = get_nested(config, 'storage.local_root', defaults['local_root'])

    backend = get_nested(config, 'storage.backend', defaults['backend'])
    if backend == 'local':
        return LocalStorageUploader(root=local_root, public_base_url=public_base_url)

    if backend == 'http':
        # Locally stored fallbacks are served by the application, not the object store
        local = LocalStorageUploader(
            root=local_root,
            public_base_url=get_nested(
                config, 'storage.local_public_base_url', defaults['local_public_base_url'])
        )
        remote = HttpStorageUploader(
            upload_url=get_nested(config, 'storage.upload_url'),
            public_base_url=public_base_url,
            token=get_nested(config, 'storage.upload_token'),
            timeout=get_nested(config, 'fetcher.timeout', 30)
        )
        if get_nested(config, 'storage.fallback_to_local', defaults['fallback_to_local']):
            return FallbackStorageUploader(remote, local)
        return remote

    raise ValueError(f"Invalid storage backend: {backend}. Must be 'local' or 'http'.")


__all__ = [
    'StorageUploadError',
    'StorageUploader',
    'LocalStorageUploader',
    'HttpStorageUploader',
    'FallbackStorageUploader',
    'build_uploader'
]
