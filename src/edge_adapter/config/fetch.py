"""
Outbound fetch configuration.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class FetchConfig:
    """Configuration for the unified fetch."""

    default_decompress: bool = True

    # Total timeout for the host (aiohttp) transport. Edge runtimes enforce
    # their own limits and ignore this.
    timeout: float | None = None

    def __post_init__(self):
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")


__all__ = ["FetchConfig"]
