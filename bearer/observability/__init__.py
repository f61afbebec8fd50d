"""
Observability module - Logging and Metrics.
"""

from bearer.observability.logging import get_logger, log_context, setup_logging
from bearer.observability.metrics import TokenMetrics, metrics

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "TokenMetrics",
]
