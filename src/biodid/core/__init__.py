"""biodid core - configuration, logging and the shared error taxonomy."""

from .config import CoreSettings, clear_config_cache, get_config, set_config
from .exceptions import (
    HTTP_STATUS_BY_KIND,
    BioDIDError,
    ConflictError,
    ContentNotFoundError,
    DecodeError,
    DeserializationError,
    DuplicateRecordError,
    ErrorKind,
    NotAuthorizedError,
    NotFoundError,
    PersistenceError,
    SerializationError,
    StoreError,
    StoreReadError,
    StoreWriteError,
    ValidationError,
)
from .logging import configure_logging

__all__ = [
    # Config
    "CoreSettings",
    "get_config",
    "set_config",
    "clear_config_cache",
    # Exceptions
    "ErrorKind",
    "HTTP_STATUS_BY_KIND",
    "BioDIDError",
    "NotFoundError",
    "NotAuthorizedError",
    "ValidationError",
    "ConflictError",
    "SerializationError",
    "DeserializationError",
    "DecodeError",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    "ContentNotFoundError",
    "PersistenceError",
    "DuplicateRecordError",
    # Logging
    "configure_logging",
]
