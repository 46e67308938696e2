"""Logging setup for switchboard and its host."""

from .logging import LoggingSetup

__all__ = ["LoggingSetup"]
