"""spendctl utilities: logging, config and deterministic hashing.

Individual modules are imported directly by consumers, e.g.:
    from ..utils.logging_config import StructuredLogger
    from ..utils.config_loader import config_loader
"""

from .logging_config import setup_logging, get_logger, StructuredLogger, JSONFormatter
from .config_loader import config_loader, ConfigLoader, SpendctlConfig, TelemetryConfig
from .deterministic import canonical_json, stable_hash_hex

__all__ = [
    "setup_logging", "get_logger", "StructuredLogger", "JSONFormatter",
    "config_loader", "ConfigLoader", "SpendctlConfig", "TelemetryConfig",
    "canonical_json", "stable_hash_hex",
]
