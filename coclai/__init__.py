"""Versioned text artifacts, document patches, hook contracts and prompt-run models."""

__version__ = "0.1.5"