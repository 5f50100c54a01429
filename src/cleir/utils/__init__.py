"""Utility helpers for Cleir."""

from cleir.utils.logging import LogContext, setup_logging

__all__ = ["LogContext", "setup_logging"]
