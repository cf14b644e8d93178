"""
gst_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- YAML-driven, validated at load.  Sits beside
    ``gst_kernel`` and below ``gst_modules``.  The kernel and the engines
    MUST NEVER import from ``gst_config``; ``gst_modules.bootstrap``
    translates an ``EngineConfig`` into their inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - A configuration that fails ``validate_config`` is never returned.
    - Deterministic: the same YAML document always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configured path does not exist.
    - ``ValueError`` -- schema or cross-field validation failures.

Audit relevance:
    Every ``get_active_config()`` call emits a ``GST_CONFIG_TRACE`` log
    entry with the config id, version and checksum.
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path

from gst_config.loader import compute_checksum, load_config, load_yaml_file, parse_config
from gst_config.schema import EngineConfig, JurisdictionDef, RateDef, TdsDef, ThresholdsDef
from gst_config.validator import ConfigValidationResult, validate_config

_logger = logging.getLogger("gst_kernel.config")

CONFIG_PATH_ENV = "GST_ENGINE_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: ``path`` argument, then the ``GST_ENGINE_CONFIG``
    environment variable, then the packaged ``defaults.yaml``.  Each
    distinct file is loaded and validated once per process.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If configuration validation fails.
    """
    resolved = Path(path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    config = _load_validated(str(resolved.resolve()))

    _logger.info(
        "GST_CONFIG_TRACE",
        extra={
            "trace_type": "GST_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "rate_count": len(config.rates),
            "jurisdiction_count": len(config.jurisdictions),
        },
    )
    return config


@functools.lru_cache(maxsize=8)
def _load_validated(path: str) -> EngineConfig:
    config = load_config(Path(path))
    validation = validate_config(config)
    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"config_id": config.config_id, "detail": warning})
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    return config


def clear_config_cache() -> None:
    """Forget loaded configurations (tests that rewrite config files)."""
    _load_validated.cache_clear()


__all__ = [
    "CONFIG_PATH_ENV",
    "ConfigValidationResult",
    "DEFAULT_CONFIG_PATH",
    "EngineConfig",
    "JurisdictionDef",
    "RateDef",
    "TdsDef",
    "ThresholdsDef",
    "clear_config_cache",
    "compute_checksum",
    "get_active_config",
    "load_config",
    "load_yaml_file",
    "parse_config",
    "validate_config",
]
