"""Shared utilities and base classes for services layer.

- AsyncHTTPClient: Base class for all external API clients with retry logic
- HTTPClientError: Exception for HTTP client failures
- KeyValueStore: Storage used for user state such as holdings
"""

from .http_client import AsyncHTTPClient, HTTPClientError, HTTPTimeoutError
from .kv_store import InMemoryKeyValueStore, KeyValueStore, SqlKeyValueStore

__all__ = [
    "AsyncHTTPClient",
    "HTTPClientError",
    "HTTPTimeoutError",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SqlKeyValueStore",
]
