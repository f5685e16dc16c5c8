"""
Configuration Management for datamirror

Process-wide defaults (purge delay, state compression, logging) are
passed explicitly into each mirror instead of being mutated globally.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Environment variable overrides prefixed with DATAMIRROR_
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from datamirror.core.types import Result, Ok, Err
from datamirror.core import constants as C


_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class MirrorConfig:
    """Root configuration shared by a mirror and all of its namespaces."""
    
    default_purge_delay_ms: int = C.DEFAULT_PURGE_DELAY_MS
    state_compression_threshold: int = C.STATE_COMPRESSION_THRESHOLD
    log_level: str = C.DEFAULT_LOG_LEVEL
    log_json: bool = True
    
    @classmethod
    def from_env(cls) -> Result[MirrorConfig, str]:
        """
        Load configuration from environment variables.
        
        Example: DATAMIRROR_PURGE_DELAY_MS=5000, DATAMIRROR_LOG_JSON=false
        """
        try:
            config = cls(
                default_purge_delay_ms=int(
                    os.getenv("DATAMIRROR_PURGE_DELAY_MS", str(C.DEFAULT_PURGE_DELAY_MS))
                ),
                state_compression_threshold=int(
                    os.getenv(
                        "DATAMIRROR_STATE_COMPRESSION_THRESHOLD",
                        str(C.STATE_COMPRESSION_THRESHOLD),
                    )
                ),
                log_level=os.getenv("DATAMIRROR_LOG_LEVEL", C.DEFAULT_LOG_LEVEL).upper(),
                log_json=os.getenv("DATAMIRROR_LOG_JSON", "true").lower() in _TRUTHY,
            )
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")
        
        validation = config.validate()
        if validation.is_err():
            return validation
        return Ok(config)
    
    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if self.default_purge_delay_ms < 0:
            return Err("default_purge_delay_ms cannot be negative")
        if self.state_compression_threshold < 0:
            return Err("state_compression_threshold cannot be negative")
        if self.log_level not in C.LOG_LEVELS:
            return Err(f"Unknown log level: {self.log_level}")
        return Ok(None)
