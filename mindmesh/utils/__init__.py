"""Shared utilities: errors, logging, resilience, and vector math."""
