"""
Constants for the datamirror cache.

All defaults and magic numbers centralized here.
"""

from typing import Final

# =============================================================================
# TIME UNITS
# =============================================================================
SECOND_MS: Final[int] = 1000

# =============================================================================
# PURGE SCHEDULING
# =============================================================================
DEFAULT_PURGE_DELAY_MS: Final[int] = 1 * SECOND_MS

# =============================================================================
# STATE TRANSFER
# =============================================================================
STATE_FORMAT_VERSION: Final[int] = 0x01
STATE_FLAG_COMPRESSED: Final[int] = 0x01
STATE_HEADER_BYTES: Final[int] = 2
STATE_COMPRESSION_THRESHOLD: Final[int] = 1024  # Compress if >= 1KB

# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LOG_LEVEL: Final[str] = "INFO"
