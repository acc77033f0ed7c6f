"""
Relay Service Adapters

This package provides the adapter pattern implementation for the broker
backends (NATS, In-Memory).
"""
from .base import AdapterError, BrokerAdapter, MessageHandler, PublishError, SubscriptionError
from .nats_adapter import NatsAdapter, build_tls_context
from .memory_adapter import MemoryAdapter

__all__ = [
    "AdapterError",
    "BrokerAdapter",
    "MessageHandler",
    "PublishError",
    "SubscriptionError",
    "NatsAdapter",
    "build_tls_context",
    "MemoryAdapter",
]
