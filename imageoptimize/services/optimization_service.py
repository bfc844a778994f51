"""Service wiring the source loader to the optimizer."""

import time
from typing import Optional

from imageoptimize.config import Settings
from imageoptimize.core.optimization import ImageOptimizer
from imageoptimize.models.optimization import OptimizationConfig, OptimizationResult
from imageoptimize.services.source_loader import load_source
from imageoptimize.utils.logging import get_logger

logger = get_logger(__name__)


class OptimizationService:
    """Handles optimization requests for source references."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        optimizer: Optional[ImageOptimizer] = None,
    ):
        """Initialize the optimization service.

        Args:
            settings: Application settings (read from the environment when omitted)
            optimizer: Optimizer to use; one sized from the settings is created otherwise
        """
        self.settings = settings or Settings()
        self.optimizer = optimizer or ImageOptimizer(max_workers=self.settings.max_workers)

    def default_config(self) -> OptimizationConfig:
        return self.settings.to_optimization_config()

    async def optimize_bytes(
        self, data: bytes, config: Optional[OptimizationConfig] = None
    ) -> OptimizationResult:
        """Optimize in-memory image bytes."""
        return await self.optimizer.optimize(data, config or self.default_config())

    async def optimize_source(
        self, reference: str, config: Optional[OptimizationConfig] = None
    ) -> OptimizationResult:
        """Load a source reference, then optimize it.

        Args:
            reference: URL, file path or base64 payload
            config: Optimization configuration (settings defaults when omitted)

        Returns:
            OptimizationResult for the source

        Raises:
            SourceFetchError: The source could not be loaded
            ImageOptimizeError: Any optimizer failure
        """
        start_time = time.perf_counter()
        data = await load_source(reference, timeout=self.settings.fetch_timeout)
        logger.debug(
            "Source loaded",
            size=len(data),
            load_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return await self.optimize_bytes(data, config)

    def close(self) -> None:
        self.optimizer.close()

    async def __aenter__(self) -> "OptimizationService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
