"""Shared building blocks: errors, logging helpers and constants."""
