"""Importers package: ingestion-time relocation of remote images into durable storage."""

from .normalizer import DurableStorageSink, Normalizer
from .storage import (
    FallbackStorageUploader,
    HttpStorageUploader,
    LocalStorageUploader,
    StorageUploader,
    StorageUploadError,
    build_uploader
)

__all__ = [
    'DurableStorageSink',
    'Normalizer',
    'FallbackStorageUploader',
    'HttpStorageUploader',
    'LocalStorageUploader',
    'StorageUploader',
    'StorageUploadError',
    'build_uploader'
]
