"""
Per-runtime context builders.
"""

from . import cloudflare, fastly

__all__ = ["cloudflare", "fastly"]
