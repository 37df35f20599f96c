"""Impress to HubSpot migration toolkit.

Exposes the high-level ``run_sync`` API for programmatic use.
"""

from .runner import run_sync  # Public API for synchronisation

__all__ = ["run_sync"]  # Re-exported symbol
