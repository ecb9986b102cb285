"""
recovery_config -- single public entrypoint for rule configuration.

Responsibility:
    Provides the ONLY way to obtain rule configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``RecoveryConfig`` whose
    engine-facing parts (FeeSchedule, ChannelRules) are passed straight
    into the pure engines.

Architecture position:
    Configuration -- sits above recovery_kernel and recovery_engines, below
    recovery_ingestion and recovery_services.  Engines never import this
    package; they receive its output as arguments.

Failure modes:
    - ``FileNotFoundError`` for a missing rule-set file.
    - ``ConfigValidationError`` when the document fails validation.

Audit relevance:
    Every call emits a ``RECOVERY_CONFIG_TRACE`` log entry with config_id,
    version, and checksum, tying computed fees to the rule set that
    produced them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from recovery_config.loader import load_config
from recovery_config.schema import IngestionSettings, RecoveryConfig, ReportingSettings

_logger = logging.getLogger("recovery_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> RecoveryConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override rule-set file.  Defaults to
            recovery_config/sets/default.yaml.
    """
    config = load_config(config_path or DEFAULT_CONFIG_PATH)
    _logger.info(
        "RECOVERY_CONFIG_TRACE",
        extra={
            "trace_type": "RECOVERY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": config.source,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "IngestionSettings",
    "RecoveryConfig",
    "ReportingSettings",
    "get_active_config",
]
