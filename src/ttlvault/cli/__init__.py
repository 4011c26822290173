"""Command-line interface for TTLVault."""
