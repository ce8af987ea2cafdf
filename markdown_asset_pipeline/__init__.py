"""
Markdown Asset Pipeline

Makes markdown documents self-contained with respect to the images they
reference.

Features:
- Export: bundle documents plus every image they reference into one zip archive,
  with links rewritten to ``./images/<filename>``
- Ingestion: relocate externally hosted images into durable storage under
  date-partitioned keys and rewrite links to the storage URLs
- Each distinct image URL is fetched at most once per run
- Proxy fallback for hosts that block hotlinking
- Failed images never break a document: the original link is kept

Basic Usage:
    asset-pipeline export ./docs -o bundle.zip
    asset-pipeline normalize ./docs --config config.yaml

Example Configuration (config.yaml):
    fetcher:
        timeout: 30
        hostile_hosts: ["cdn.nlark.com", "yuque.com"]

    storage:
        backend: "http"
        upload_url: "https://storage.example.com/bucket"
        public_base_url: "https://cdn.example.com"
        upload_token: ${STORAGE_TOKEN}
"""

__version__ = "1.0.0"

from .config_loader import ConfigLoader, DEFAULT_CONFIG
from .exporters import ArchiveBuilder, FileDocumentStore
from .importers import Normalizer, build_uploader
from .models import AssetPipelineError, Document
from .orchestrator import AssetPipeline, BatchNormalizer

__all__ = [
    '__version__',
    'ConfigLoader',
    'DEFAULT_CONFIG',
    'ArchiveBuilder',
    'FileDocumentStore',
    'Normalizer',
    'build_uploader',
    'AssetPipelineError',
    'Document',
    'AssetPipeline',
    'BatchNormalizer'
]
