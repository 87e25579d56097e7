"""Text extraction adapters."""
