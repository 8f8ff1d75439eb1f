"""
Observability module - Logging and Metrics.
"""

from purchasekit.observability.logging import get_logger, log_context, setup_logging
from purchasekit.observability.metrics import metrics

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
]
