"""Pluggable paid-service adapters."""

from .base import AdapterContext, AdapterResult, PaidServiceAdapter, ServiceAdapter
from .fetch import DataFetchAdapter
from .text import TextTransformAdapter

__all__ = [
    "AdapterContext",
    "AdapterResult",
    "ServiceAdapter",
    "PaidServiceAdapter",
    "TextTransformAdapter",
    "DataFetchAdapter",
]
