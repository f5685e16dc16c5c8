"""
Mirror: snapshot store, handles, namespaces and state transfer.
"""

from datamirror.mirror.snapshots import Failure, Snapshot, ListSnapshot
from datamirror.mirror.options import (
    MirrorOptions,
    default_compute_hash_for_key,
    create_timeout_purge_scheduler,
)
from datamirror.mirror.handles import MirrorHandle, DocumentHandle, DocumentListHandle
from datamirror.mirror.namespaced import NamespacedMirror, MirrorStats
from datamirror.mirror.mirror import Mirror, create_mirror
from datamirror.mirror.transfer import encode_state, decode_state

__all__ = [
    "Failure",
    "Snapshot",
    "ListSnapshot",
    "MirrorOptions",
    "default_compute_hash_for_key",
    "create_timeout_purge_scheduler",
    "MirrorHandle",
    "DocumentHandle",
    "DocumentListHandle",
    "NamespacedMirror",
    "MirrorStats",
    "Mirror",
    "create_mirror",
    "encode_state",
    "decode_state",
]
