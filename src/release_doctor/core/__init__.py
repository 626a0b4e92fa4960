"""Core diagnostics logic (no I/O surfaces)."""
