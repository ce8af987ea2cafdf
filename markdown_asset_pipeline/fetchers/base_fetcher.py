"""Abstract base fetcher interface and fetch error types."""

from abc import ABC, abstractmethod
import logging
from typing import Any, Dict, Optional

from ..config_loader import DEFAULT_CONFIG
from ..models import AssetPipelineError, FetchResult, ImageReference


class FetchError(AssetPipelineError):
    """Network, timeout, non-success status or local read failure for one asset."""
    pass


class ProxyFetchError(FetchError):
    """The proxy fallback failed as well; terminal for that one reference."""
    pass


class BaseFetcher(ABC):
    """Abstract base class for asset fetchers."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, logger: Optional[logging.Logger] = None):
        """
        Initialize base fetcher with configuration and logger.

        Args:
            config: Configuration dictionary
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.config = config or DEFAULT_CONFIG
        self.logger = logger or logging.getLogger('markdown_asset_pipeline.fetchers')

    @abstractmethod
    def fetch(self, reference: ImageReference) -> FetchResult:
        """
        Retrieve the raw bytes behind a reference.

        Implementations never raise for per-asset failures; they return a
        FetchResult whose ``error`` is set and whose ``data`` is None.

        Args:
            reference: Classified image reference

        Returns:
            FetchResult
        """
        pass

    def close(self) -> None:
        """Release any held resources."""
        pass

    def __enter__(self) -> 'BaseFetcher':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
