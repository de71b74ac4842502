"""Shared utilities: logging, factories, enumerations and constants."""
