"""
Validation module for sparkwms-sync.

Provides the error taxonomy, HTTP error classification, and settings
validation.
"""

from validation.errors import (
    ErrorCode,
    SyncError,
    InputValidationError,
    ConfigError,
    PersistenceError,
    QueueCorruptError,
    RemoteError,
    NetworkError,
    ServerRejectedError,
    UnauthorizedError,
    SerializationError,
    InternalError,
    classify_http_error,
    to_sync_error,
)
from validation.config import CorruptQueuePolicy, SyncSettings, load_settings

__all__ = [
    'ErrorCode',
    'SyncError',
    'InputValidationError',
    'ConfigError',
    'PersistenceError',
    'QueueCorruptError',
    'RemoteError',
    'NetworkError',
    'ServerRejectedError',
    'UnauthorizedError',
    'SerializationError',
    'InternalError',
    'classify_http_error',
    'to_sync_error',
    'CorruptQueuePolicy',
    'SyncSettings',
    'load_settings',
]
