"""Language model provider adapters."""
