"""
Core module: Type definitions, error hierarchy, and configuration.
"""

from datamirror.core.types import (
    Result,
    Ok,
    Err,
    Timestamp,
    UNSET,
)
from datamirror.core.errors import (
    ErrorCode,
    MirrorError,
    FetchError,
    MissingDataError,
    UpdateError,
    ConfigurationError,
    HydrationError,
)
from datamirror.core.config import MirrorConfig

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "UNSET",
    "ErrorCode",
    "MirrorError",
    "FetchError",
    "MissingDataError",
    "UpdateError",
    "ConfigurationError",
    "HydrationError",
    "MirrorConfig",
]
