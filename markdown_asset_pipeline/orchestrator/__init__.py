"""
Orchestration package for the asset pipeline.

Scan → Fetch → Rewrite is implemented once in AssetPipeline and parameterized
by an AssetSink; BatchNormalizer drives the ingestion side over a whole store.
"""

from .asset_pipeline import AssetPipeline, AssetSink
from .batch_normalizer import BatchNormalizer, DocumentStore

__all__ = [
    'AssetPipeline',
    'AssetSink',
    'BatchNormalizer',
    'DocumentStore'
]
