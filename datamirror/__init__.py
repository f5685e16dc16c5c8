"""
datamirror: Client-Side Data Cache and Subscription Engine

Fetches and caches the value for a key, tracks who still needs it,
refetches on demand, and purges it once nobody does:
- Fetch deduplication and batching (one fetch_many call per batch)
- Reference-counted holds with deferred, cancellable purges
- Batched change notification (one callback per subscriber per commit)
- Per-record effects with mandatory cleanup
- Isolated namespaces per context object
- State extraction and hydration across process boundaries

License: MIT
"""

__version__ = "0.1.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from datamirror.core.types import Result, Ok, Err, Timestamp, UNSET
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

from datamirror.mirror import (
    Failure,
    Snapshot,
    ListSnapshot,
    MirrorOptions,
    default_compute_hash_for_key,
    create_timeout_purge_scheduler,
    DocumentHandle,
    DocumentListHandle,
    NamespacedMirror,
    MirrorStats,
    Mirror,
    create_mirror,
)

__all__ = [
    "__version__",
    # Core
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
    # Mirror
    "Failure",
    "Snapshot",
    "ListSnapshot",
    "MirrorOptions",
    "default_compute_hash_for_key",
    "create_timeout_purge_scheduler",
    "DocumentHandle",
    "DocumentListHandle",
    "NamespacedMirror",
    "MirrorStats",
    "Mirror",
    "create_mirror",
]
