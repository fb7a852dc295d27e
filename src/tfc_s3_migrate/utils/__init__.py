"""Shared utilities."""

from .logging import normalize_level, setup_logging

__all__ = ['normalize_level', 'setup_logging']
