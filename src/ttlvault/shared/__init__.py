"""TTLVault Shared Module.

This package contains constants, error handling and logging helpers used
across TTLVault.
"""

__all__ = ["constants", "errors", "logging"]
