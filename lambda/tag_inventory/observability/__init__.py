"""Observability components for metrics and logging."""

from .metrics_emitter import MetricsEmitter
from .structured_logger import StructuredLogger

__all__ = ["MetricsEmitter", "StructuredLogger"]
