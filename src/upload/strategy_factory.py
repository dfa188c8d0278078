# src/upload/strategy_factory.py — v1
"""Factory: instantiate an upload strategy from its configured name."""

from __future__ import annotations

import importlib
import logging

from marathon_cloud.upload.base_strategy import BaseUploadStrategy

logger = logging.getLogger(__name__)

# Registry of strategy name → class path (lazy import).
_STRATEGY_REGISTRY: dict[str, str] = {
    "presigned": "marathon_cloud.upload.presigned_strategy.PresignedUploadStrategy",
    "multipart": "marathon_cloud.upload.multipart_strategy.MultipartUploadStrategy",
}


class UnsupportedUploadStrategyError(ValueError):
    """Raised when a strategy name is not registered."""


def create_upload_strategy(name: str) -> BaseUploadStrategy:
    """Instantiate the upload strategy registered under `name`.

    Raises:
        UnsupportedUploadStrategyError: If the name is not registered.
    """
    if name not in _STRATEGY_REGISTRY:
        raise UnsupportedUploadStrategyError(
            f"Unsupported upload strategy: {name!r}. "
            f"Available: {', '.join(sorted(_STRATEGY_REGISTRY))}"
        )
    strategy_cls = _import_class(_STRATEGY_REGISTRY[name])
    logger.debug("Creating upload strategy: %s", name)
    return strategy_cls()


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
